"""Create credits table

Revision ID: 20261016_000001
Revises:
Create Date: 2026-10-16

One row per issued store credit. Rows are never deleted.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261016_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CREDIT_STATUSES = ("ACTIVE", "USED", "EXPIRED", "CANCELLED")


def upgrade() -> None:
    op.create_table(
        "credits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("original_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column(
            "status",
            sa.Enum(*CREDIT_STATUSES, name="credit_status", create_constraint=True),
            nullable=False,
            server_default="ACTIVE",
        ),
        sa.Column("expiration_date", sa.DateTime(), nullable=True),
        sa.Column("customer_id", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_credits"),
        sa.CheckConstraint("original_amount > 0", name="ck_credits_original_amount_positive"),
        sa.CheckConstraint("balance >= 0", name="ck_credits_balance_non_negative"),
    )
    op.create_index("ix_credits_code", "credits", ["code"], unique=True)
    op.create_index("ix_credits_status", "credits", ["status"])
    op.create_index("ix_credits_expiration_date", "credits", ["expiration_date"])
    op.create_index("ix_credits_customer_id", "credits", ["customer_id"])


def downgrade() -> None:
    op.drop_index("ix_credits_customer_id", table_name="credits")
    op.drop_index("ix_credits_expiration_date", table_name="credits")
    op.drop_index("ix_credits_status", table_name="credits")
    op.drop_index("ix_credits_code", table_name="credits")
    op.drop_table("credits")
