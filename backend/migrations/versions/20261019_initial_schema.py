"""Initial schema: shifts, cash ledger, checkouts, payments, payment settings

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "shifts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("closed_by_staff_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("open_guard", sa.Boolean(), nullable=True),
        sa.Column("opening_balance_cents", sa.Integer(), nullable=False),
        sa.Column("closing_balance_cents", sa.Integer(), nullable=True),
        sa.Column("expected_closing_cents", sa.Integer(), nullable=True),
        sa.Column("variance_cents", sa.Integer(), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("open_guard", name="uq_shifts_single_open"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shifts", schema=None) as batch_op:
        batch_op.create_index("ix_shifts_staff_id", ["staff_id"], unique=False)
        batch_op.create_index("ix_shifts_status", ["status"], unique=False)
        batch_op.create_index("ix_shifts_opened_at", ["opened_at"], unique=False)

    op.create_table(
        "cash_ledger_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("entry_type", sa.String(length=32), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("receipt_number", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_ledger_amount_positive"),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("cash_ledger_entries", schema=None) as batch_op:
        batch_op.create_index("ix_cash_ledger_entries_shift_id", ["shift_id"], unique=False)
        batch_op.create_index("ix_cash_ledger_entries_entry_type", ["entry_type"], unique=False)
        batch_op.create_index("ix_cash_ledger_entries_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_cash_ledger_entries_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_ledger_shift_created", ["shift_id", "created_at"], unique=False)
        batch_op.create_index("ix_ledger_reference", ["reference_type", "reference_id"], unique=False)

    op.create_table(
        "checkouts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("source_reservation_id", sa.String(length=64), nullable=True),
        sa.Column("include_court_price", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("checkouts", schema=None) as batch_op:
        batch_op.create_index("ix_checkouts_status", ["status"], unique=False)
        batch_op.create_index("ix_checkouts_source_reservation_id", ["source_reservation_id"], unique=False)
        batch_op.create_index("ix_checkouts_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "payer_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("assigned_players", sa.JSON(), nullable=False),
        sa.Column("split_type", sa.String(length=16), nullable=False),
        sa.Column("split_config", sa.JSON(), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("paid_amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["checkout_id"], ["checkouts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("payer_accounts", schema=None) as batch_op:
        batch_op.create_index("ix_payer_accounts_checkout_id", ["checkout_id"], unique=False)
        batch_op.create_index("ix_payer_accounts_status", ["status"], unique=False)
        batch_op.create_index("ix_payer_accounts_checkout_position", ["checkout_id", "position"], unique=False)

    op.create_table(
        "checkout_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("plu_code", sa.String(length=32), nullable=True),
        sa.Column("quantity", sa.Numeric(precision=10, scale=3), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("total_price_cents", sa.Integer(), nullable=False),
        sa.Column("assigned_player_ids", sa.JSON(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["checkout_id"], ["checkouts.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["payer_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("checkout_items", schema=None) as batch_op:
        batch_op.create_index("ix_checkout_items_checkout_id", ["checkout_id"], unique=False)
        batch_op.create_index("ix_checkout_items_account_id", ["account_id"], unique=False)

    op.create_table(
        "checkout_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("cash_received_cents", sa.Integer(), nullable=True),
        sa.Column("cash_change_cents", sa.Integer(), nullable=True),
        sa.Column("request_reference", sa.String(length=16), nullable=True),
        sa.Column("request_string", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("confirmed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("cancelled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("ledger_entry_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["payer_accounts.id"]),
        sa.ForeignKeyConstraint(["checkout_id"], ["checkouts.id"]),
        sa.ForeignKeyConstraint(["ledger_entry_id"], ["cash_ledger_entries.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("checkout_payments", schema=None) as batch_op:
        batch_op.create_index("ix_checkout_payments_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_checkout_payments_checkout_id", ["checkout_id"], unique=False)
        batch_op.create_index("ix_checkout_payments_method", ["method"], unique=False)
        batch_op.create_index("ix_checkout_payments_status", ["status"], unique=False)
        batch_op.create_index("ix_checkout_payments_request_reference", ["request_reference"], unique=False)
        batch_op.create_index("ix_checkout_payments_account_status", ["account_id", "status"], unique=False)

    op.create_table(
        "payment_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("cash_enabled", sa.Boolean(), nullable=False),
        sa.Column("qr_enabled", sa.Boolean(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("qr_account", sa.String(length=34), nullable=True),
        sa.Column("qr_bank_code", sa.String(length=4), nullable=True),
        sa.Column("qr_recipient_name", sa.String(length=64), nullable=True),
        sa.Column("qr_default_message", sa.String(length=128), nullable=True),
        sa.Column("qr_reference_prefix", sa.String(length=4), nullable=True),
        sa.Column("include_court_price", sa.Boolean(), nullable=False),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("payment_settings")
    op.drop_table("checkout_payments")
    op.drop_table("checkout_items")
    op.drop_table("payer_accounts")
    op.drop_table("checkouts")
    op.drop_table("cash_ledger_entries")
    op.drop_table("shifts")
