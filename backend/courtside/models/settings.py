from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class PaymentSettings(db.Model):
    """
    Facility-wide payment configuration (single row).

    Seeded from Config defaults on first read; staff edit it at runtime
    without a redeploy (bank account change, switching QR payments off).
    """
    __tablename__ = "payment_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    cash_enabled = db.Column(db.Boolean, nullable=False, default=True)
    qr_enabled = db.Column(db.Boolean, nullable=False, default=True)
    # Narrow QR down to one kind of sale; both only matter while qr_enabled is on
    qr_enabled_for_reservations = db.Column(db.Boolean, nullable=False, default=True)
    qr_enabled_for_bar = db.Column(db.Boolean, nullable=False, default=True)

    currency = db.Column(db.String(3), nullable=False, default="CZK")
    qr_account = db.Column(db.String(34), nullable=True)
    qr_bank_code = db.Column(db.String(4), nullable=True)
    qr_recipient_name = db.Column(db.String(64), nullable=True)
    qr_default_message = db.Column(db.String(128), nullable=True)
    qr_reference_prefix = db.Column(db.String(4), nullable=True)

    # Facility policy: seed a court line when checking out a reservation
    include_court_price = db.Column(db.Boolean, nullable=False, default=True)

    updated_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_enabled": self.cash_enabled,
            "qr_enabled": self.qr_enabled,
            "qr_enabled_for_reservations": self.qr_enabled_for_reservations,
            "qr_enabled_for_bar": self.qr_enabled_for_bar,
            "currency": self.currency,
            "qr_account": self.qr_account,
            "qr_bank_code": self.qr_bank_code,
            "qr_recipient_name": self.qr_recipient_name,
            "qr_default_message": self.qr_default_message,
            "qr_reference_prefix": self.qr_reference_prefix,
            "include_court_price": self.include_court_price,
            "updated_by_user_id": self.updated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
