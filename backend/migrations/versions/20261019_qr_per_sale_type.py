"""Add per-sale-type QR payment toggles to payment_settings

Revision ID: 20261019_qr_sale_type
Revises: 20261019_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_qr_sale_type"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("payment_settings", schema=None) as batch_op:
        batch_op.add_column(
            sa.Column("qr_enabled_for_reservations", sa.Boolean(), nullable=False, server_default=sa.true())
        )
        batch_op.add_column(
            sa.Column("qr_enabled_for_bar", sa.Boolean(), nullable=False, server_default=sa.true())
        )


def downgrade():
    with op.batch_alter_table("payment_settings", schema=None) as batch_op:
        batch_op.drop_column("qr_enabled_for_bar")
        batch_op.drop_column("qr_enabled_for_reservations")
