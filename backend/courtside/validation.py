from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


# Maximum single amount: 9,999,999.99 (999,999,999 minor units)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999

MAX_QUANTITY = Decimal("10000")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., second open shift)."""


class NotFoundError(LookupError):
    """404-level reference to a missing checkout, account, shift or payment."""


class AuthenticationRequiredError(PermissionError):
    """401-level: operation needs an identified staff member."""


def coerce_cents(value: Any, field: str, *, allow_zero: bool = True, allow_negative: bool = False) -> int:
    """
    Strict integer parsing for minor-unit amounts.

    Rejects floats, booleans, decimals in strings and scientific notation so
    that money never passes through binary floating point.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        cents = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped or "," in stripped:
            raise ValidationError(f"{field} must be an integer number of minor units (no decimals)")
        try:
            cents = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")
    if cents == 0 and not allow_zero:
        raise ValidationError(f"{field} must be positive")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents


def coerce_quantity(value: Any, field: str = "quantity") -> Decimal:
    """Quantities are decimals with at most three places (e.g. 1.5 hours)."""
    if value is None:
        return Decimal(1)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        qty = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not qty.is_finite():
        raise ValidationError(f"{field} must be a number")
    if qty.as_tuple().exponent < -3:
        raise ValidationError(f"{field} supports at most 3 decimal places")
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    return qty


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} cannot be blank")
    text = str(value).strip()
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def require_payload(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def coerce_id(value: Any, field: str) -> int:
    """Positive integer primary key from a path, query string or JSON body."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id")
    try:
        ident = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id")
    if ident <= 0:
        raise ValidationError(f"{field} must be an integer id")
    return ident
