"""initial payment schema: promo codes

Revision ID: 0001_payment
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_payment"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "promo_codes",
        sa.Column("promo_code", sa.String(length=64), nullable=False),
        sa.Column("discount_percentage", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("promo_code"),
        sa.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_promo_codes_discount_range",
        ),
    )
    op.create_index("ix_promo_codes_is_active", "promo_codes", ["is_active"])


def downgrade() -> None:
    op.drop_index("ix_promo_codes_is_active", table_name="promo_codes")
    op.drop_table("promo_codes")
