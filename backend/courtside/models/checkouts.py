from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Checkout(db.Model):
    """
    Billing document for one transaction episode (a court booking, a bar tab).

    WHY: A single reservation is often paid by several people with different
    instruments. The checkout aggregates line items and payer accounts; its
    total and status are projections recomputed from them, never hand-set.

    STATUS:
    - open: nothing paid yet
    - partial: some account has a paid amount
    - completed: every account is paid
    - cancelled: explicit terminal state
    """
    __tablename__ = "checkouts"
    __table_args__ = (
        db.Index("ix_checkouts_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="open", index=True)

    source_reservation_id = db.Column(db.String(64), nullable=True, index=True)
    include_court_price = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, *, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "status": self.status,
            "source_reservation_id": self.source_reservation_id,
            "include_court_price": self.include_court_price,
            "notes": self.notes,
            "total_amount_cents": self.total_amount_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }
        if include_children:
            data["accounts"] = [a.to_dict() for a in sorted(self.accounts, key=lambda a: (a.position, a.id))]
            data["items"] = [i.to_dict() for i in sorted(self.items, key=lambda i: i.id)]
        return data


class PayerAccount(db.Model):
    """
    Sub-bill within a checkout, paid by one or more participants.

    SPLIT TYPES:
    - by_item: total is the sum of items assigned to this account
    - equal: the split group's pool divided evenly (remainder to earliest accounts)
    - percentage: pool x percent, percentages of the group must total 100
    - fixed_amounts: caller-supplied amounts that must total the pool

    `position` is the stable creation order used for remainder distribution.
    """
    __tablename__ = "payer_accounts"
    __table_args__ = (
        db.Index("ix_payer_accounts_checkout_position", "checkout_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    checkout_id = db.Column(db.Integer, db.ForeignKey("checkouts.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(128), nullable=False)
    assigned_players = db.Column(db.JSON, nullable=False, default=list)

    split_type = db.Column(db.String(16), nullable=False, default="by_item")
    split_config = db.Column(db.JSON, nullable=False, default=dict)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)  # unpaid, partial, paid

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    checkout = db.relationship("Checkout", backref=db.backref("accounts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_cents(self) -> int:
        return max(self.total_amount_cents - self.paid_amount_cents, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "checkout_id": self.checkout_id,
            "position": self.position,
            "name": self.name,
            "assigned_players": list(self.assigned_players or []),
            "split_type": self.split_type,
            "split_config": dict(self.split_config or {}),
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_cents": self.remaining_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class LineItem(db.Model):
    """
    Chargeable line on a checkout.

    total_price_cents = round(unit_price_cents * quantity) - discount_cents.
    Discount lines (kind="discount") carry a negative total equal to
    -discount_cents; every other kind is non-negative.
    """
    __tablename__ = "checkout_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    checkout_id = db.Column(db.Integer, db.ForeignKey("checkouts.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("payer_accounts.id"), nullable=True, index=True)

    kind = db.Column(db.String(16), nullable=False)  # court, merchandise, equipment, surcharge, discount
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    plu_code = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.Numeric(10, 3), nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    assigned_player_ids = db.Column(db.JSON, nullable=False, default=list)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    checkout = db.relationship("Checkout", backref=db.backref("items", lazy=True))
    account = db.relationship("PayerAccount", backref=db.backref("items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "checkout_id": self.checkout_id,
            "account_id": self.account_id,
            "kind": self.kind,
            "name": self.name,
            "description": self.description,
            "plu_code": self.plu_code,
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "total_price_cents": self.total_price_cents,
            "assigned_player_ids": list(self.assigned_player_ids or []),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Money applied against one payer account.

    METHODS:
    - cash: confirmed when recorded; change = received - amount
    - payment_request: bank-transfer QR; pending until an operator confirms
      it out-of-band. Only confirmation posts to the ledger and the account.

    STATUS: pending, confirmed, cancelled (unconfirmed requests only).
    """
    __tablename__ = "checkout_payments"
    __table_args__ = (
        db.Index("ix_checkout_payments_account_status", "account_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("payer_accounts.id"), nullable=False, index=True)
    checkout_id = db.Column(db.Integer, db.ForeignKey("checkouts.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Cash
    cash_received_cents = db.Column(db.Integer, nullable=True)
    cash_change_cents = db.Column(db.Integer, nullable=True)

    # Payment request
    request_reference = db.Column(db.String(16), nullable=True, index=True)
    request_string = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    confirmed_by_user_id = db.Column(db.Integer, nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, nullable=True)

    ledger_entry_id = db.Column(db.Integer, db.ForeignKey("cash_ledger_entries.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    account = db.relationship("PayerAccount", backref=db.backref("payments", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_confirmed(self) -> bool:
        return self.status == "confirmed"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "checkout_id": self.checkout_id,
            "method": self.method,
            "status": self.status,
            "amount_cents": self.amount_cents,
            "cash_received_cents": self.cash_received_cents,
            "cash_change_cents": self.cash_change_cents,
            "request_reference": self.request_reference,
            "request_string": self.request_string,
            "created_by_user_id": self.created_by_user_id,
            "confirmed_by_user_id": self.confirmed_by_user_id,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "ledger_entry_id": self.ledger_entry_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
        }
