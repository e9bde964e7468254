# Overview: Service-layer operations for the cash ledger; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..extensions import db
from ..models import LedgerEntry, Shift
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, MAX_AMOUNT_CENTS, require_text
from .concurrency import lock_for_update
"""
Cash Ledger Invariants (authoritative)

- Append-only: append_entry() is the only write; there is no update/delete API.
- Every entry belongs to the shift that was open when it was written.
- Entries are written inside the same DB transaction as the domain change they
  record, and are never retried on their own: a failed append fails the caller.
- Balances are pure functions over entries, never stored separately.
"""


CASH_IN = "cash_in"
CASH_OUT = "cash_out"
SALE_CASH = "sale_cash"
REFUND_CASH = "refund_cash"
QR_IN = "qr_in"
SHIFT_PAYOUT = "shift_payout"

ENTRY_TYPES = (CASH_IN, CASH_OUT, SALE_CASH, REFUND_CASH, QR_IN, SHIFT_PAYOUT)

# Physical cash moving in/out of the drawer
DRAWER_INFLOW_TYPES = frozenset({CASH_IN, SALE_CASH})
DRAWER_OUTFLOW_TYPES = frozenset({CASH_OUT, REFUND_CASH, SHIFT_PAYOUT})
# Bank money: recorded for reconciliation, never part of the drawer count
NON_DRAWER_INFLOW_TYPES = frozenset({QR_IN})

# Opening float / closing count entries that bracket a shift
REF_SHIFT_OPEN = "shift_open"
REF_SHIFT_CLOSE = "shift_close"
BRACKET_REFERENCE_TYPES = frozenset({REF_SHIFT_OPEN, REF_SHIFT_CLOSE})

DESCRIPTION_MAX = 255


def lock_open_shift() -> Shift:
    """Current open shift, row-locked. Cash can only move inside a shift."""
    shift = lock_for_update(db.session.query(Shift).filter_by(status="open")).first()
    if not shift:
        raise ConflictError("No open shift")
    return shift


def append_entry(
    entry_type: str,
    amount_cents: int,
    description: str,
    *,
    user_id: int | None = None,
    shift: Shift | None = None,
    reference_type: str | None = None,
    reference_id: int | str | None = None,
    notes: str | None = None,
    receipt_number: str | None = None,
) -> LedgerEntry:
    """
    Append one ledger entry (flushed, not committed).

    `shift` is passed only by shift open/close, whose bracket entries reference
    the shift being opened or closed. Everyone else gets the open shift.
    """
    if entry_type not in ENTRY_TYPES:
        raise ValidationError(f"Invalid ledger entry type: {entry_type}. Must be one of {list(ENTRY_TYPES)}")

    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise ValidationError("Ledger amount must be an integer number of minor units")
    if amount_cents <= 0:
        raise ValidationError("Ledger amount must be positive")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"Ledger amount cannot exceed {MAX_AMOUNT_CENTS}")

    description = require_text(description, "Ledger description", max_length=DESCRIPTION_MAX)

    if shift is None:
        shift = lock_open_shift()
    elif shift.status != "open":
        raise ConflictError(f"Shift {shift.id} is closed; ledger entries need an open shift")

    entry = LedgerEntry(
        shift_id=shift.id,
        entry_type=entry_type,
        amount_cents=amount_cents,
        description=description,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        user_id=user_id,
        notes=notes,
        receipt_number=receipt_number,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def query_entries(
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    shift_id: int | None = None,
    entry_types: Iterable[str] | None = None,
    reference_type: str | None = None,
    reference_id: int | str | None = None,
    order: str = "asc",
    limit: int | None = None,
    offset: int = 0,
) -> list[LedgerEntry]:
    """
    Read-only ledger query.

    order="asc" is reconciliation order (oldest first); "desc" feeds displays.
    The range is inclusive on both ends.
    """
    if order not in ("asc", "desc"):
        raise ValidationError("order must be 'asc' or 'desc'")

    q = db.session.query(LedgerEntry)

    if start is not None:
        q = q.filter(LedgerEntry.created_at >= start)
    if end is not None:
        q = q.filter(LedgerEntry.created_at <= end)
    if shift_id is not None:
        q = q.filter(LedgerEntry.shift_id == shift_id)
    if entry_types:
        types = list(entry_types)
        unknown = [t for t in types if t not in ENTRY_TYPES]
        if unknown:
            raise ValidationError(f"Invalid ledger entry type: {', '.join(unknown)}")
        q = q.filter(LedgerEntry.entry_type.in_(types))
    if reference_type is not None:
        q = q.filter(LedgerEntry.reference_type == reference_type)
    if reference_id is not None:
        q = q.filter(LedgerEntry.reference_id == str(reference_id))

    if order == "asc":
        q = q.order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
    else:
        q = q.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())

    if offset:
        q = q.offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return q.all()


# =============================================================================
# PURE AGGREGATES
# =============================================================================

def sum_by_type(entries: Iterable[LedgerEntry]) -> dict[str, int]:
    totals = {t: 0 for t in ENTRY_TYPES}
    for entry in entries:
        totals[entry.entry_type] = totals.get(entry.entry_type, 0) + entry.amount_cents
    return totals


def _movements(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    return [e for e in entries if e.reference_type not in BRACKET_REFERENCE_TYPES]


def inflow_total(entries: Iterable[LedgerEntry]) -> int:
    """Drawer cash in, excluding the opening float bracket."""
    return sum(e.amount_cents for e in _movements(entries) if e.entry_type in DRAWER_INFLOW_TYPES)


def outflow_total(entries: Iterable[LedgerEntry]) -> int:
    """Drawer cash out, excluding the closing count bracket."""
    return sum(e.amount_cents for e in _movements(entries) if e.entry_type in DRAWER_OUTFLOW_TYPES)


def non_drawer_inflow_total(entries: Iterable[LedgerEntry]) -> int:
    return sum(e.amount_cents for e in entries if e.entry_type in NON_DRAWER_INFLOW_TYPES)


def drawer_balance(opening_balance_cents: int, entries: Iterable[LedgerEntry]) -> int:
    """opening + drawer inflows - drawer outflows."""
    entries = list(entries)
    return opening_balance_cents + inflow_total(entries) - outflow_total(entries)


# =============================================================================
# CONVENIENCE WRITERS
# =============================================================================

def record_cash_in(amount_cents: int, description: str, *, user_id: int | None = None, notes: str | None = None) -> LedgerEntry:
    """Float top-up or other cash added to the drawer mid-shift."""
    return append_entry(CASH_IN, amount_cents, description, user_id=user_id, notes=notes)


def record_cash_out(amount_cents: int, description: str, *, user_id: int | None = None, notes: str | None = None) -> LedgerEntry:
    """Cash drop to the safe or other removal mid-shift."""
    return append_entry(CASH_OUT, amount_cents, description, user_id=user_id, notes=notes)


def record_refund(
    amount_cents: int,
    description: str,
    reason: str,
    *,
    user_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | str | None = None,
) -> LedgerEntry:
    if not reason or not reason.strip():
        raise ValidationError("Refund reason is required")
    return append_entry(
        REFUND_CASH,
        amount_cents,
        description,
        user_id=user_id,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=f"Cash refund - reason: {reason.strip()}",
    )


def record_shift_payout(
    amount_cents: int,
    employee_name: str,
    *,
    user_id: int | None = None,
    paid_shift_id: int | None = None,
    receipt_number: str | None = None,
) -> LedgerEntry:
    if not employee_name or not employee_name.strip():
        raise ValidationError("employee_name is required")
    return append_entry(
        SHIFT_PAYOUT,
        amount_cents,
        f"Shift payout - {employee_name.strip()}",
        user_id=user_id,
        reference_type="shift" if paid_shift_id else None,
        reference_id=paid_shift_id,
        receipt_number=receipt_number or generate_receipt_number(),
        notes="Employee paid out of the drawer",
    )


def generate_receipt_number(now: datetime | None = None) -> str:
    """Cash receipt number: PD<YYYYMMDD><HHMMSS>."""
    now = now or utcnow()
    return f"PD{now:%Y%m%d%H%M%S}"
