"""
Payment-request encoder (Czech "QR Platba" / SPAYD).

Pure and deterministic: the same request always encodes to the same string.
A scanning banking app pre-fills the transfer from it; nothing here talks to
a bank.

Format (field order is fixed by the scanning apps)::

    SPD*1.0*ACC:<account>*AM:<amount.2f>*CC:<currency>[*RN:<name>][*MSG:<message>][*X-VS:<vs>][*X-KS:<ks>][*X-SS:<ss>]
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from io import BytesIO
from urllib.parse import quote

import qrcode

from .validation import ValidationError


SPAYD_HEADER = "SPD*1.0"

DEFAULT_MIN_AMOUNT = Decimal("0.01")
DEFAULT_MAX_AMOUNT = Decimal("50000.00")

RECIPIENT_NAME_MAX = 35
MESSAGE_MAX = 60
SYMBOL_MAX_DIGITS = 10

# Characters left readable inside RN/MSG; everything else is percent-encoded
# (notably '*', which would break the segment structure). Spaces stay
# literal, which SPAYD allows: RN:Tenisovy klub, never RN:Tenisovy%20klub.
_SAFE_CHARS = " -.,/"


@dataclass(frozen=True)
class PaymentRequest:
    amount: Decimal
    currency: str
    recipient_account: str
    recipient_bank: str | None = None
    recipient_name: str | None = None
    message: str | None = None
    reference: str | None = None
    constant_symbol: str | None = None
    specific_symbol: str | None = None


def validate_amount(
    amount,
    *,
    min_amount: Decimal = DEFAULT_MIN_AMOUNT,
    max_amount: Decimal = DEFAULT_MAX_AMOUNT,
) -> Decimal:
    """Amount must have at most two decimals and sit inside the sane range."""
    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid payment amount: {amount!r}")
    if not value.is_finite():
        raise ValidationError(f"Invalid payment amount: {amount!r}")
    if value != value.quantize(Decimal("0.01")):
        raise ValidationError("Payment amount can have at most 2 decimal places")
    if value < Decimal(min_amount):
        raise ValidationError(f"Payment amount must be at least {Decimal(min_amount):.2f}")
    if value > Decimal(max_amount):
        raise ValidationError(f"Payment amount cannot exceed {Decimal(max_amount):.2f}")
    return value


def _symbol(value: str | None, field: str) -> str | None:
    if value is None or value == "":
        return None
    text = str(value).strip()
    if not text.isdigit() or len(text) > SYMBOL_MAX_DIGITS:
        raise ValidationError(f"{field} must be numeric with at most {SYMBOL_MAX_DIGITS} digits")
    return text


def _encode_text(value: str, limit: int) -> str:
    return quote(value.strip()[:limit], safe=_SAFE_CHARS)


def encode(
    request: PaymentRequest,
    *,
    min_amount: Decimal = DEFAULT_MIN_AMOUNT,
    max_amount: Decimal = DEFAULT_MAX_AMOUNT,
) -> str:
    amount = validate_amount(request.amount, min_amount=min_amount, max_amount=max_amount)

    account = (request.recipient_account or "").strip()
    if not account:
        raise ValidationError("Recipient account is required")
    if "*" in account:
        raise ValidationError("Recipient account contains invalid characters")
    if request.recipient_bank:
        account = f"{account}/{request.recipient_bank.strip()}"

    currency = (request.currency or "").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError("Currency must be a 3-letter ISO code")

    parts = [
        SPAYD_HEADER,
        f"ACC:{account}",
        f"AM:{amount:.2f}",
        f"CC:{currency}",
    ]

    if request.recipient_name and request.recipient_name.strip():
        parts.append(f"RN:{_encode_text(request.recipient_name, RECIPIENT_NAME_MAX)}")

    if request.message and request.message.strip():
        parts.append(f"MSG:{_encode_text(request.message, MESSAGE_MAX)}")

    vs = _symbol(request.reference, "Variable symbol")
    if vs:
        parts.append(f"X-VS:{vs}")

    ks = _symbol(request.constant_symbol, "Constant symbol")
    if ks:
        parts.append(f"X-KS:{ks}")

    ss = _symbol(request.specific_symbol, "Specific symbol")
    if ss:
        parts.append(f"X-SS:{ss}")

    return "*".join(parts)


def display_amount(amount: Decimal, currency: str) -> str:
    return f"{Decimal(amount):.2f} {currency}"


def render_qr_png(payload: str) -> bytes:
    """
    Scannable QR image of the payload (PNG bytes).

    Error correction level M keeps the code small while tolerating a
    scratched phone screen or a poor printout.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_png_data_url(payload: str) -> str:
    encoded = base64.b64encode(render_qr_png(payload)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
