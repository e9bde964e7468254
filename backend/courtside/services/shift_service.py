"""
Shift Management Service

WHY: A shift is the period one cash drawer is accountable for. Opening
records the float, closing records the counted cash, and the difference to
what the ledger says should be in the drawer is the variance.

DESIGN PRINCIPLES:
- At most one open shift system-wide (single cash drawer), enforced by a
  unique column in the database rather than an in-memory singleton
- Shifts are immutable once closed
- Opening float and closing count are ledger entries too, so the ledger
  describes the whole drawer history on its own
- Variance is reported, never corrected and never a reason to refuse closing
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LedgerEntry, Shift
from ..money import format_currency
from ..time_utils import utcnow
from ..validation import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_cents,
    optional_text,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import (
    CASH_IN,
    CASH_OUT,
    REF_SHIFT_CLOSE,
    REF_SHIFT_OPEN,
    REFUND_CASH,
    SHIFT_PAYOUT,
    append_entry,
    drawer_balance,
    inflow_total,
    non_drawer_inflow_total,
    outflow_total,
    query_entries,
    record_cash_in,
    record_cash_out,
    record_refund,
    record_shift_payout,
    sum_by_type,
)


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

def open_shift(user_id: int | None, opening_balance_cents: int, notes: str | None = None) -> Shift:
    """
    Open the cash drawer for a new shift.

    Args:
        user_id: Staff member opening the shift (required)
        opening_balance_cents: Float counted into the drawer
        notes: Optional free text

    Raises:
        AuthenticationRequiredError: No identified staff member
        ValidationError: Negative or malformed opening balance
        ConflictError: A shift is already open
    """
    if not user_id:
        raise AuthenticationRequiredError("An identified staff member is required to open a shift")

    opening = coerce_cents(opening_balance_cents, "opening_balance_cents")
    notes = optional_text(notes, "notes", max_length=2000)

    def _op():
        existing = lock_for_update(db.session.query(Shift).filter_by(status="open")).first()
        if existing:
            raise ConflictError(f"A shift is already open (shift {existing.id})")

        shift = Shift(
            staff_id=user_id,
            status="open",
            open_guard=True,
            opening_balance_cents=opening,
            opened_at=utcnow(),
            notes=notes,
        )
        db.session.add(shift)
        db.session.flush()

        # Ledger amounts are strictly positive: an empty drawer has no float entry.
        if opening > 0:
            append_entry(
                CASH_IN,
                opening,
                "Shift opened",
                user_id=user_id,
                shift=shift,
                reference_type=REF_SHIFT_OPEN,
                reference_id=shift.id,
                notes=f"Opening float: {format_currency(opening)}",
            )

        db.session.commit()
        return shift

    try:
        shift = run_with_retry(_op)
    except IntegrityError as exc:
        # Lost the race on uq_shifts_single_open
        raise ConflictError("A shift is already open") from exc

    current_app.logger.info("Shift %s opened by staff %s with float %s", shift.id, user_id, opening)
    return shift


def close_shift(closing_balance_cents: int, notes: str | None = None, *, user_id: int | None = None) -> Shift:
    """
    Close the open shift with the operator's cash count.

    expected_closing = opening float + drawer inflows - drawer outflows;
    variance = counted - expected. A non-zero variance is logged, not refused.

    Raises:
        NotFoundError: No shift is open
        ValidationError: Negative or malformed closing balance
    """
    closing = coerce_cents(closing_balance_cents, "closing_balance_cents")
    notes = optional_text(notes, "notes", max_length=2000)

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter_by(status="open")).first()
        if not shift:
            raise NotFoundError("No open shift")

        entries = query_entries(shift_id=shift.id)
        expected = drawer_balance(shift.opening_balance_cents, entries)
        variance = closing - expected
        actor_id = user_id or shift.staff_id

        if closing > 0:
            append_entry(
                CASH_OUT,
                closing,
                "Shift closed",
                user_id=actor_id,
                shift=shift,
                reference_type=REF_SHIFT_CLOSE,
                reference_id=shift.id,
                notes=f"Counted cash: {format_currency(closing)}; variance: {format_currency(variance)}",
            )

        shift.status = "closed"
        shift.open_guard = None
        shift.closed_at = utcnow()
        shift.closed_by_staff_id = actor_id
        shift.closing_balance_cents = closing
        shift.expected_closing_cents = expected
        shift.variance_cents = variance
        if notes:
            shift.notes = notes

        db.session.commit()
        return shift

    shift = run_with_retry(_op)

    if shift.variance_cents:
        current_app.logger.warning(
            "Shift %s closed with variance %s (expected %s, counted %s)",
            shift.id, shift.variance_cents, shift.expected_closing_cents, shift.closing_balance_cents,
        )
    else:
        current_app.logger.info("Shift %s closed, drawer balanced", shift.id)
    return shift


# =============================================================================
# QUERIES
# =============================================================================

def get_current_shift() -> Shift | None:
    """The open shift, if any."""
    return db.session.query(Shift).filter_by(status="open").first()


def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError(f"Shift {shift_id} not found")
    return shift


def list_shifts(status: str | None = None, limit: int = 50) -> list[Shift]:
    q = db.session.query(Shift)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Shift.opened_at.desc(), Shift.id.desc()).limit(limit).all()


def get_summary() -> dict:
    """
    Cash summary for the open shift.

    Scoped to the shift's lifetime, not the calendar day, so a shift running
    past midnight and the one after it never share entries. Returns zeros
    when no shift is open.
    """
    shift = get_current_shift()
    if not shift:
        return {
            "current_balance_cents": 0,
            "inflow_cents": 0,
            "outflow_cents": 0,
            "qr_inflow_cents": 0,
            "open_shift": None,
        }

    entries = query_entries(shift_id=shift.id)
    return {
        "current_balance_cents": drawer_balance(shift.opening_balance_cents, entries),
        "inflow_cents": inflow_total(entries),
        "outflow_cents": outflow_total(entries),
        "qr_inflow_cents": non_drawer_inflow_total(entries),
        "open_shift": shift.to_dict(),
    }


def get_shift_report(shift_id: int) -> dict:
    """
    Reconciliation report for any shift, open or closed.

    For an open shift expected_closing_cents is the running drawer balance
    and variance_cents is None.
    """
    shift = get_shift(shift_id)
    entries = query_entries(shift_id=shift.id)

    if shift.is_open:
        expected = drawer_balance(shift.opening_balance_cents, entries)
        variance = None
    else:
        expected = shift.expected_closing_cents
        variance = shift.variance_cents

    return {
        "shift": shift.to_dict(),
        "totals_by_type": sum_by_type(entries),
        "inflow_cents": inflow_total(entries),
        "outflow_cents": outflow_total(entries),
        "qr_inflow_cents": non_drawer_inflow_total(entries),
        "expected_closing_cents": expected,
        "variance_cents": variance,
        "entry_count": len(entries),
    }


# =============================================================================
# DRAWER MOVEMENTS
# =============================================================================

MOVEMENT_TYPES = (CASH_IN, CASH_OUT, REFUND_CASH, SHIFT_PAYOUT)


def record_drawer_movement(
    entry_type: str,
    amount_cents: int,
    *,
    user_id: int | None,
    description: str | None = None,
    reason: str | None = None,
    employee_name: str | None = None,
    paid_shift_id: int | None = None,
    notes: str | None = None,
) -> LedgerEntry:
    """
    Cash put into or taken out of the drawer outside a sale.

    cash_in / cash_out need a description, refund_cash a reason, and
    shift_payout the employee being paid.

    Raises:
        AuthenticationRequiredError: No identified staff member
        ValidationError: Unknown movement or missing detail
        ConflictError: No open shift
    """
    if not user_id:
        raise AuthenticationRequiredError("An identified staff member is required to move cash")
    if entry_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid drawer movement: {entry_type}. Must be one of {list(MOVEMENT_TYPES)}")

    amount = coerce_cents(amount_cents, "amount_cents", allow_zero=False)
    description = optional_text(description, "description", max_length=255)
    notes = optional_text(notes, "notes", max_length=2000)

    def _op():
        if entry_type == CASH_IN:
            entry = record_cash_in(amount, require_text(description, "description"), user_id=user_id, notes=notes)
        elif entry_type == CASH_OUT:
            entry = record_cash_out(amount, require_text(description, "description"), user_id=user_id, notes=notes)
        elif entry_type == REFUND_CASH:
            entry = record_refund(amount, description or "Cash refund", reason, user_id=user_id)
        else:
            entry = record_shift_payout(amount, employee_name, user_id=user_id, paid_shift_id=paid_shift_id)
        db.session.commit()
        return entry

    entry = run_with_retry(_op)
    current_app.logger.info(
        "Drawer movement %s of %s by staff %s (entry %s)", entry_type, amount, user_id, entry.id
    )
    return entry
