from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Shift(db.Model):
    """
    Cash-drawer working period.

    WHY: Cashier accountability. Each shift is bracketed by an opening float
    and an operator-counted closing balance; the variance between the counted
    and the expected cash is reported, never corrected.

    LIFECYCLE:
    - open: drawer in use, cash/ledger writes are scoped to this shift
    - closed: counted and immutable

    SINGLE DRAWER: `open_guard` is TRUE while open and NULL once closed. The
    unique constraint on it lets the database, not the application, refuse a
    second open shift (NULLs never collide).
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.UniqueConstraint("open_guard", name="uq_shifts_single_open"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, nullable=False, index=True)
    closed_by_staff_id = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="open", index=True)  # open, closed
    open_guard = db.Column(db.Boolean, nullable=True)

    # Cash tracking (all amounts in minor units)
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_balance_cents = db.Column(db.Integer, nullable=True)  # operator count
    expected_closing_cents = db.Column(db.Integer, nullable=True)  # derived from ledger at close
    variance_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "closed_by_staff_id": self.closed_by_staff_id,
            "status": self.status,
            "opening_balance_cents": self.opening_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "expected_closing_cents": self.expected_closing_cents,
            "variance_cents": self.variance_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class LedgerEntry(db.Model):
    """
    One cash-affecting event. Append-only: never updated, never deleted.

    ENTRY TYPES (sign implied by type, amount always positive):
    - cash_in: float added to the drawer (including the opening float)
    - cash_out: cash removed from the drawer (including the closing count)
    - sale_cash: cash payment for a checkout account
    - refund_cash: cash handed back to a customer
    - qr_in: confirmed bank-transfer payment (not drawer cash)
    - shift_payout: staff wage paid out of the drawer
    """
    __tablename__ = "cash_ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_shift_created", "shift_id", "created_at"),
        db.Index("ix_ledger_reference", "reference_type", "reference_id"),
        db.CheckConstraint("amount_cents > 0", name="ck_ledger_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    entry_type = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)

    # What the entry is about (e.g. "checkout_payment" / "42", "shift_open" / "7")
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)

    user_id = db.Column(db.Integer, nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    receipt_number = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    shift = db.relationship("Shift", backref=db.backref("ledger_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "entry_type": self.entry_type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "notes": self.notes,
            "receipt_number": self.receipt_number,
            "created_at": to_utc_z(self.created_at),
        }
