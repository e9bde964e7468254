"""
Money helpers.

All amounts inside the engine are integer minor units (haléře for CZK).
Decimal is used only at the edges: parsing operator input, formatting for
display, and the major-unit amount of a payment request.
"""

from __future__ import annotations

import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Sequence

from .validation import ValidationError


MINOR_UNITS = 100
CURRENCY_SYMBOLS = {"CZK": "Kč", "EUR": "€"}


def to_cents(value: Decimal | int | str) -> int:
    """Major units -> minor units. Rejects sub-minor precision instead of rounding it away."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    cents = amount * MINOR_UNITS
    if cents != cents.to_integral_value():
        raise ValidationError("Amount can have at most 2 decimal places")
    return int(cents)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / MINOR_UNITS).quantize(Decimal("0.01"))


def format_amount(cents: int) -> str:
    """Plain two-decimal rendering used in payment requests: 28000 -> '280.00'."""
    return f"{from_cents(cents):.2f}"


def format_currency(cents: int, currency: str = "CZK") -> str:
    """Czech display format: 123450 -> '1 234,50 Kč'."""
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), MINOR_UNITS)
    grouped = f"{whole:,}".replace(",", " ")
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{sign}{grouped},{fraction:02d} {symbol}"


def parse_currency(text: str) -> int:
    """
    Inverse of format_currency for operator input ('1 234,50 Kč', '280.5').

    Returns 0 for empty input.
    """
    cleaned = re.sub(r"[^\d,.\-]", "", text or "")
    if not cleaned:
        return 0
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    return to_cents(cleaned)


def multiply(unit_cents: int, quantity: Decimal | int) -> int:
    """unit price x quantity, rounded half-up to whole minor units."""
    product = Decimal(unit_cents) * Decimal(quantity)
    return int(product.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def split_equal(total_cents: int, parts: int) -> list[int]:
    """
    Split total into `parts` shares that sum exactly to total.

    The remainder goes one minor unit at a time to the first shares:
    301 / 2 -> [151, 150].
    """
    if parts <= 0:
        raise ValidationError("Cannot split between zero accounts")
    base, remainder = divmod(total_cents, parts)
    return [base + 1 if i < remainder else base for i in range(parts)]


def allocate(total_cents: int, weights: Sequence[Decimal]) -> list[int]:
    """
    Distribute total proportionally to weights (largest-remainder method).

    Each share is floor(total * w / sum(w)); leftover units go to the largest
    fractional parts, ties broken by position. The shares always sum to total.
    """
    if not weights:
        raise ValidationError("Cannot allocate between zero accounts")
    weights = [Decimal(str(w)) for w in weights]
    if any(w < 0 for w in weights):
        raise ValidationError("Allocation weights cannot be negative")
    weight_sum = sum(weights, Decimal(0))
    if weight_sum <= 0:
        raise ValidationError("Allocation weights must sum to a positive value")

    # Scale weights to integers so the arithmetic below is exact.
    places = max(max(-w.as_tuple().exponent, 0) for w in weights)
    scaled = [int(w * (10 ** places)) for w in weights]
    scaled_sum = sum(scaled)

    shares = []
    remainders = []
    for w in scaled:
        share, rem = divmod(total_cents * w, scaled_sum)
        shares.append(share)
        remainders.append(rem)
    leftover = total_cents - sum(shares)

    order = sorted(range(len(weights)), key=lambda i: (-remainders[i], i))
    for i in order[:leftover]:
        shares[i] += 1
    return shares
