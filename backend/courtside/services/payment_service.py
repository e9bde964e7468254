# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

WHY: Accounts are settled with cash at the counter or with a QR bank-transfer
request the player scans on their phone. Money that is confirmed must show up
in three places at once: the payment row, the account's paid amount and the
cash ledger.

DESIGN PRINCIPLES:
- Payments are separate from accounts (many-to-one relationship)
- Cash is confirmed when recorded; payment requests stay pending until an
  operator confirms the transfer arrived
- Payment, ledger entry and account update commit together or not at all
- Confirmation is idempotent: confirming twice never double-counts
- No overpayment: an account can never be paid above its total
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import PayerAccount, Payment
from ..money import format_currency, from_cents
from ..payment_request import (
    SYMBOL_MAX_DIGITS,
    PaymentRequest,
    display_amount,
    encode,
    render_qr_png_data_url,
)
from ..time_utils import utcnow
from ..validation import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_cents,
    optional_text,
)
from .checkout_service import CHECKOUT_CANCELLED, lock_checkout, recalculate_locked
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import QR_IN, SALE_CASH, append_entry
from .settings_service import (
    METHOD_CASH,
    METHOD_PAYMENT_REQUEST,
    get_payment_settings,
    is_iban,
    is_qr_enabled_for,
    sale_type_of,
)


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_METHODS = (METHOD_CASH, METHOD_PAYMENT_REQUEST)

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"

REF_CHECKOUT_PAYMENT = "checkout_payment"

REFERENCE_BODY_DIGITS = 6


# =============================================================================
# HELPERS
# =============================================================================

def _lock_account(account_id: int) -> PayerAccount:
    account = lock_for_update(db.session.query(PayerAccount).filter_by(id=account_id)).first()
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    return account


def _lock_payment(payment_id: int) -> Payment:
    payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def _lock_payable(account_id: int):
    """Lock checkout then account (same order everywhere) and refuse cancelled checkouts."""
    account = db.session.get(PayerAccount, account_id)
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    checkout = lock_checkout(account.checkout_id)
    if checkout.status == CHECKOUT_CANCELLED:
        raise ConflictError(f"Checkout {checkout.id} is cancelled")
    return checkout, _lock_account(account_id)


def payment_reference(account_id: int, prefix: str | None = None) -> str:
    """
    Variable symbol for an account's transfers: optional prefix + zero-padded id.

    Deterministic, so a reprinted QR code carries the same reference and the
    bank statement matches the account whichever request was scanned.
    """
    prefix = (prefix or "").strip()
    if prefix and not prefix.isdigit():
        raise ValidationError("Reference prefix must be numeric")
    body = str(account_id).zfill(REFERENCE_BODY_DIGITS)
    reference = f"{prefix}{body}"
    if len(reference) > SYMBOL_MAX_DIGITS:
        raise ValidationError(f"Payment reference {reference} exceeds {SYMBOL_MAX_DIGITS} digits")
    return reference


def _apply_confirmed(checkout, account: PayerAccount, payment: Payment, entry) -> None:
    payment.ledger_entry_id = entry.id
    account.paid_amount_cents += payment.amount_cents
    recalculate_locked(checkout)


# =============================================================================
# CASH
# =============================================================================

def process_cash_payment(
    account_id: int,
    amount_cents: int,
    cash_received_cents: int | None = None,
    *,
    user_id: int | None = None,
    notes: str | None = None,
) -> Payment:
    """
    Record cash tendered against an account.

    Args:
        account_id: Account being paid
        amount_cents: Amount applied to the account
        cash_received_cents: Cash handed over (defaults to the exact amount)
        user_id: Staff member at the drawer

    Returns:
        Confirmed Payment with change calculated

    Raises:
        ValidationError: Non-positive amount, not enough cash tendered, or
            more than the account still owes
        ConflictError: Cash disabled, checkout cancelled, or no open shift
        NotFoundError: Unknown account
    """
    amount = coerce_cents(amount_cents, "amount_cents", allow_zero=False)
    received = amount if cash_received_cents is None else coerce_cents(cash_received_cents, "cash_received_cents")
    if received < amount:
        raise ValidationError(
            f"Cash received ({format_currency(received)}) is less than the amount ({format_currency(amount)})"
        )
    notes = optional_text(notes, "notes", max_length=2000)

    if not get_payment_settings().cash_enabled:
        raise ConflictError("Cash payments are disabled")

    def _op():
        checkout, account = _lock_payable(account_id)
        if amount > account.remaining_cents:
            raise ValidationError(
                f"Payment of {format_currency(amount)} exceeds the remaining "
                f"{format_currency(account.remaining_cents)} on '{account.name}'"
            )

        now = utcnow()
        payment = Payment(
            account_id=account.id,
            checkout_id=checkout.id,
            method=METHOD_CASH,
            status=STATUS_CONFIRMED,
            amount_cents=amount,
            cash_received_cents=received,
            cash_change_cents=received - amount,
            created_by_user_id=user_id,
            confirmed_by_user_id=user_id,
            confirmed_at=now,
            notes=notes,
        )
        db.session.add(payment)
        db.session.flush()

        # Raises ConflictError without an open shift; the whole payment rolls back
        entry = append_entry(
            SALE_CASH,
            amount,
            f"Checkout {checkout.id} - {account.name}",
            user_id=user_id,
            reference_type=REF_CHECKOUT_PAYMENT,
            reference_id=payment.id,
        )
        _apply_confirmed(checkout, account, payment, entry)
        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info(
        "Cash payment %s of %s on account %s (change %s)",
        payment.id, payment.amount_cents, account_id, payment.cash_change_cents,
    )
    return payment


# =============================================================================
# PAYMENT REQUESTS (QR)
# =============================================================================

def generate_payment_request(
    account_id: int,
    amount_cents: int | None = None,
    *,
    user_id: int | None = None,
    message: str | None = None,
) -> dict:
    """
    Create a pending payment request and its QR code.

    Nothing is posted to the ledger or the account until the transfer is
    confirmed. The amount defaults to what the account still owes.

    Returns:
        {"payment", "encoded_request", "display_string", "qr_image"}

    Raises:
        ValidationError: Amount outside the allowed range or above the balance
        ConflictError: QR payments disabled (globally or for this kind of
            sale: booking checkouts are reservation sales, walk-ins bar sales)
            or checkout cancelled
    """
    message = optional_text(message, "message", max_length=255)
    settings = get_payment_settings()
    if not settings.qr_enabled or not settings.qr_account:
        raise ConflictError("QR payments are disabled")

    min_amount = Decimal(str(current_app.config["PAYMENT_REQUEST_MIN_AMOUNT"]))
    max_amount = Decimal(str(current_app.config["PAYMENT_REQUEST_MAX_AMOUNT"]))

    def _op():
        checkout, account = _lock_payable(account_id)
        sale_type = sale_type_of(checkout)
        if not is_qr_enabled_for(sale_type, settings):
            raise ConflictError(f"QR payments are disabled for {sale_type} sales")
        amount = account.remaining_cents if amount_cents is None else coerce_cents(amount_cents, "amount_cents")
        if amount <= 0:
            raise ValidationError(f"Account '{account.name}' has nothing left to pay")
        if amount > account.remaining_cents:
            raise ValidationError(
                f"Payment of {format_currency(amount)} exceeds the remaining "
                f"{format_currency(account.remaining_cents)} on '{account.name}'"
            )

        reference = payment_reference(account.id, settings.qr_reference_prefix)
        request = PaymentRequest(
            amount=from_cents(amount),
            currency=settings.currency,
            recipient_account=settings.qr_account,
            recipient_bank=None if is_iban(settings.qr_account) else settings.qr_bank_code,
            recipient_name=settings.qr_recipient_name,
            message=message or f"{settings.qr_default_message or 'Checkout'} #{checkout.id} {account.name}",
            reference=reference,
        )
        encoded = encode(request, min_amount=min_amount, max_amount=max_amount)

        payment = Payment(
            account_id=account.id,
            checkout_id=checkout.id,
            method=METHOD_PAYMENT_REQUEST,
            status=STATUS_PENDING,
            amount_cents=amount,
            request_reference=reference,
            request_string=encoded,
            created_by_user_id=user_id,
        )
        db.session.add(payment)
        db.session.commit()
        return payment, request

    payment, request = run_with_retry(_op)
    current_app.logger.info(
        "Payment request %s for %s on account %s (VS %s)",
        payment.id, payment.amount_cents, account_id, payment.request_reference,
    )
    return {
        "payment": payment,
        "encoded_request": payment.request_string,
        "display_string": display_amount(request.amount, request.currency),
        "qr_image": render_qr_png_data_url(payment.request_string),
    }


def confirm_payment_request(payment_id: int, *, user_id: int | None) -> Payment:
    """
    Confirm that a requested transfer has arrived.

    The first confirmation posts qr_in to the ledger and credits the
    account; confirming again returns the payment unchanged.

    Raises:
        AuthenticationRequiredError: No identified staff member
        ConflictError: Request cancelled, no open shift, or the amount now
            exceeds what the account owes
        NotFoundError: Unknown payment
    """
    if not user_id:
        raise AuthenticationRequiredError("An identified staff member is required to confirm a payment")

    confirmed_now = []

    def _op():
        confirmed_now.clear()
        payment = db.session.get(Payment, payment_id)
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")
        if payment.method != METHOD_PAYMENT_REQUEST:
            raise ConflictError(f"Payment {payment_id} is not a payment request")

        checkout, account = _lock_payable(payment.account_id)
        payment = _lock_payment(payment_id)
        if payment.status == STATUS_CONFIRMED:
            return payment
        if payment.status == STATUS_CANCELLED:
            raise ConflictError(f"Payment request {payment_id} was cancelled")
        if payment.amount_cents > account.remaining_cents:
            raise ConflictError(
                f"Payment request of {format_currency(payment.amount_cents)} exceeds the remaining "
                f"{format_currency(account.remaining_cents)} on '{account.name}'"
            )

        entry = append_entry(
            QR_IN,
            payment.amount_cents,
            f"Checkout {checkout.id} - {account.name} (VS {payment.request_reference})",
            user_id=user_id,
            reference_type=REF_CHECKOUT_PAYMENT,
            reference_id=payment.id,
        )
        payment.status = STATUS_CONFIRMED
        payment.confirmed_at = utcnow()
        payment.confirmed_by_user_id = user_id
        _apply_confirmed(checkout, account, payment, entry)
        db.session.commit()
        confirmed_now.append(True)
        return payment

    payment = run_with_retry(_op)
    if confirmed_now:
        current_app.logger.info("Payment request %s confirmed by staff %s", payment.id, user_id)
    else:
        current_app.logger.info("Payment request %s already confirmed", payment.id)
    return payment


def cancel_payment_request(payment_id: int, *, user_id: int | None = None, reason: str | None = None) -> Payment:
    """
    Withdraw a pending request (the player paid cash instead, wrong amount).

    Raises:
        ConflictError: The request was already confirmed, or is cash
    """
    reason = optional_text(reason, "reason", max_length=2000)

    def _op():
        payment = _lock_payment(payment_id)
        if payment.method != METHOD_PAYMENT_REQUEST:
            raise ConflictError(f"Payment {payment_id} is not a payment request")
        if payment.status == STATUS_CANCELLED:
            return payment
        if payment.status == STATUS_CONFIRMED:
            raise ConflictError(f"Payment request {payment_id} is already confirmed")

        payment.status = STATUS_CANCELLED
        payment.cancelled_at = utcnow()
        payment.cancelled_by_user_id = user_id
        if reason:
            payment.notes = reason
        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info("Payment request %s cancelled by staff %s", payment.id, user_id)
    return payment


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def get_account_payments(account_id: int) -> list[Payment]:
    if not db.session.get(PayerAccount, account_id):
        raise NotFoundError(f"Account {account_id} not found")
    return (
        db.session.query(Payment)
        .filter_by(account_id=account_id)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )


def get_remaining_balance(account_id: int) -> int:
    account = db.session.get(PayerAccount, account_id)
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    return account.remaining_cents
