# models/credit.py
import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin


class CreditStatus(str, enum.Enum):
     """Lifecycle status of a store credit."""
     ACTIVE = "ACTIVE"
     USED = "USED"
     EXPIRED = "EXPIRED"
     CANCELLED = "CANCELLED"

     @property
     def is_terminal(self) -> bool:
          return self is not CreditStatus.ACTIVE


class Credit(TimestampMixin, Base):
     """
     Credit model - one issued store-credit instrument.

     The credit is the aggregate root of its transactions. Its balance is
     only ever changed by the lifecycle engine, which appends exactly one
     Transaction in the same database transaction as the balance update.
     Rows are never deleted; terminal statuses are kept for audit.
     """
     __tablename__ = "credits"
     __table_args__ = (
          CheckConstraint("original_amount > 0", name="original_amount_positive"),
          CheckConstraint("balance >= 0", name="balance_non_negative"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     code = Column(String(32), nullable=False, unique=True, index=True)

     # Amounts
     original_amount = Column(Numeric(12, 2), nullable=False)
     balance = Column(Numeric(12, 2), nullable=False)
     currency = Column(String(3), nullable=False, default="USD")

     status = Column(
          Enum(CreditStatus, name="credit_status", create_constraint=True),
          default=CreditStatus.ACTIVE,
          nullable=False,
          index=True
     )
     expiration_date = Column(DateTime, nullable=True, index=True)

     # Weak reference; the ledger does not own customers
     customer_id = Column(String(64), nullable=True, index=True)
     note = Column(Text, nullable=True)

     # Optimistic concurrency counter, checked on every UPDATE
     version = Column(Integer, nullable=False, default=1)

     # Relationships
     transactions = relationship(
          "Transaction",
          back_populates="credit",
          order_by="Transaction.id",
     )

     __mapper_args__ = {"version_id_col": version}

     def __repr__(self):
          return f"<Credit(id={self.id}, code='{self.code}', balance={self.balance}, status='{self.status.value}')>"

     @property
     def is_active(self) -> bool:
          return self.status == CreditStatus.ACTIVE

     @property
     def is_terminal(self) -> bool:
          return self.status.is_terminal

     def is_past_due(self, now) -> bool:
          """True when the credit has an expiration date at or before now."""
          return self.expiration_date is not None and self.expiration_date <= now
