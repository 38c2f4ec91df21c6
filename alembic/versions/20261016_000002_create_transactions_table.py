"""Create transactions table

Revision ID: 20261016_000002
Revises: 20261016_000001
Create Date: 2026-10-16

Append-only ledger of every balance change (and expiration extension) of a credit.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261016_000002"
down_revision: Union[str, None] = "20261016_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRANSACTION_TYPES = ("ISSUE", "REDEEM", "ADJUST", "CANCEL", "EXPIRE", "EXTEND")


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("credit_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=True),
        sa.Column(
            "type",
            sa.Enum(*TRANSACTION_TYPES, name="transaction_type", create_constraint=True),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(12, 2), nullable=False),
        sa.Column("staff_id", sa.String(64), nullable=True),
        sa.Column("location_id", sa.String(64), nullable=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("order_number", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("previous_expiration_date", sa.DateTime(), nullable=True),
        sa.Column("new_expiration_date", sa.DateTime(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        sa.ForeignKeyConstraint(
            ["credit_id"],
            ["credits.id"],
            name="fk_transactions_credit_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_transactions_credit_id", "transactions", ["credit_id"])
    op.create_index("ix_transactions_customer_id", "transactions", ["customer_id"])
    op.create_index("ix_transactions_type", "transactions", ["type"])
    op.create_index("ix_transactions_staff_id", "transactions", ["staff_id"])
    op.create_index("ix_transactions_location_id", "transactions", ["location_id"])
    op.create_index("ix_transactions_order_id", "transactions", ["order_id"])
    op.create_index("ix_transactions_timestamp", "transactions", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_transactions_timestamp", table_name="transactions")
    op.drop_index("ix_transactions_order_id", table_name="transactions")
    op.drop_index("ix_transactions_location_id", table_name="transactions")
    op.drop_index("ix_transactions_staff_id", table_name="transactions")
    op.drop_index("ix_transactions_type", table_name="transactions")
    op.drop_index("ix_transactions_customer_id", table_name="transactions")
    op.drop_index("ix_transactions_credit_id", table_name="transactions")
    op.drop_table("transactions")
