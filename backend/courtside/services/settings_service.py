# Overview: Service-layer operations for facility payment settings.

from __future__ import annotations

import re
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import PaymentSettings
from ..validation import ValidationError, optional_text
from .concurrency import run_with_retry


METHOD_CASH = "cash"
METHOD_PAYMENT_REQUEST = "payment_request"

IBAN_RE = re.compile(r"^CZ[0-9A-Z]{22}$")
DOMESTIC_ACCOUNT_RE = re.compile(r"^(\d{1,6}-)?\d{2,10}$")
BANK_CODE_RE = re.compile(r"^\d{4}$")
REFERENCE_PREFIX_RE = re.compile(r"^\d{0,4}$")
CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

SALE_RESERVATION = "reservation"
SALE_BAR = "bar"
SALE_TYPES = (SALE_RESERVATION, SALE_BAR)

BOOLEAN_KEYS = (
    "cash_enabled",
    "qr_enabled",
    "qr_enabled_for_reservations",
    "qr_enabled_for_bar",
    "include_court_price",
)
TEXT_KEYS = {
    "qr_account": 34,
    "qr_bank_code": 4,
    "qr_recipient_name": 64,
    "qr_default_message": 128,
    "qr_reference_prefix": 4,
}
EDITABLE_KEYS = frozenset(BOOLEAN_KEYS) | frozenset(TEXT_KEYS) | {"currency"}


def _defaults() -> dict[str, Any]:
    cfg = current_app.config
    return {
        "cash_enabled": True,
        "qr_enabled": True,
        "qr_enabled_for_reservations": True,
        "qr_enabled_for_bar": True,
        "currency": cfg["CURRENCY"],
        "qr_account": cfg.get("QR_ACCOUNT") or None,
        "qr_bank_code": cfg.get("QR_BANK_CODE") or None,
        "qr_recipient_name": cfg.get("QR_RECIPIENT_NAME") or None,
        "qr_default_message": cfg.get("QR_DEFAULT_MESSAGE") or None,
        "qr_reference_prefix": cfg.get("QR_REFERENCE_PREFIX") or None,
        "include_court_price": bool(cfg.get("INCLUDE_COURT_PRICE", True)),
    }


def get_payment_settings() -> PaymentSettings:
    """The settings row, created from Config defaults on first use."""
    settings = db.session.query(PaymentSettings).order_by(PaymentSettings.id.asc()).first()
    if settings:
        return settings

    settings = PaymentSettings(**_defaults())
    db.session.add(settings)
    db.session.commit()
    return settings


def is_iban(account: str) -> bool:
    return bool(IBAN_RE.match(account))


def validate_account(account: str, bank_code: str | None) -> None:
    if is_iban(account):
        return
    if not DOMESTIC_ACCOUNT_RE.match(account):
        raise ValidationError(
            "qr_account must be an IBAN (CZ + 22 characters) or a domestic account number (prefix-number)"
        )
    if not bank_code:
        raise ValidationError("qr_bank_code is required for a domestic account number")


def _coerce_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{field} must be a boolean")


def update_payment_settings(changes: dict, *, user_id: int | None = None) -> PaymentSettings:
    """
    Apply a partial update and validate the resulting configuration as a whole.

    Raises:
        ValidationError: Unknown keys, malformed values, or QR payments
            enabled without a usable account and recipient name
    """
    if not isinstance(changes, dict) or not changes:
        raise ValidationError("No settings to update")

    unknown = sorted(set(changes) - EDITABLE_KEYS)
    if unknown:
        raise ValidationError(f"Unknown payment settings: {', '.join(unknown)}")

    cleaned: dict[str, Any] = {}
    for key in BOOLEAN_KEYS:
        if key in changes:
            cleaned[key] = _coerce_bool(changes[key], key)
    for key, max_length in TEXT_KEYS.items():
        if key in changes:
            value = optional_text(changes[key], key, max_length=max_length)
            cleaned[key] = value.replace(" ", "").upper() if key == "qr_account" and value else value
    if "currency" in changes:
        currency = str(changes["currency"] or "").strip().upper()
        if not CURRENCY_RE.match(currency):
            raise ValidationError("currency must be a 3-letter ISO code")
        cleaned["currency"] = currency

    def _op():
        settings = get_payment_settings()
        for key, value in cleaned.items():
            setattr(settings, key, value)

        if settings.qr_bank_code and not BANK_CODE_RE.match(settings.qr_bank_code):
            raise ValidationError("qr_bank_code must be 4 digits")
        if settings.qr_reference_prefix and not REFERENCE_PREFIX_RE.match(settings.qr_reference_prefix):
            raise ValidationError("qr_reference_prefix must be up to 4 digits")
        if settings.qr_enabled:
            if not settings.qr_account:
                raise ValidationError("qr_account is required when QR payments are enabled")
            validate_account(settings.qr_account, settings.qr_bank_code)
            if not settings.qr_recipient_name:
                raise ValidationError("qr_recipient_name is required when QR payments are enabled")

        settings.updated_by_user_id = user_id
        db.session.commit()
        return settings

    settings = run_with_retry(_op)
    current_app.logger.info("Payment settings updated by staff %s: %s", user_id, sorted(cleaned))
    return settings


def sale_type_of(checkout) -> str:
    """A checkout started from a booking is a reservation sale; a walk-in is a bar sale."""
    return SALE_RESERVATION if checkout.source_reservation_id else SALE_BAR


def is_qr_enabled_for(sale_type: str, settings: PaymentSettings | None = None) -> bool:
    """
    QR payments for one kind of sale: the global switch and account first,
    then the per-type toggle.

    Raises:
        ValidationError: Unknown sale type
    """
    if sale_type not in SALE_TYPES:
        raise ValidationError(f"Invalid sale type: {sale_type}. Must be one of {list(SALE_TYPES)}")
    settings = settings or get_payment_settings()
    if not settings.qr_enabled or not settings.qr_account:
        return False
    if sale_type == SALE_RESERVATION:
        return settings.qr_enabled_for_reservations
    return settings.qr_enabled_for_bar


def get_available_payment_methods(sale_type: str | None = None) -> list[str]:
    """Enabled methods; with a sale type, QR also has to be on for that type."""
    settings = get_payment_settings()
    methods = []
    if settings.cash_enabled:
        methods.append(METHOD_CASH)
    if sale_type is None:
        if settings.qr_enabled and settings.qr_account:
            methods.append(METHOD_PAYMENT_REQUEST)
    elif is_qr_enabled_for(sale_type, settings):
        methods.append(METHOD_PAYMENT_REQUEST)
    return methods
