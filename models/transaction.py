# models/transaction.py
"""
Transaction model - immutable ledger entry for one credit.

Every balance change of a credit is recorded here together with the
balance right after the change (balance_after), so the history of any
credit can be reconstructed without replaying the whole ledger.
Records are append-only; modification is prevented at the application layer.
"""
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from utils.timeutils import utcnow
from .base import Base


class TransactionType(str, enum.Enum):
     """Kinds of ledger entries."""
     ISSUE = "ISSUE"
     REDEEM = "REDEEM"
     ADJUST = "ADJUST"
     CANCEL = "CANCEL"
     EXPIRE = "EXPIRE"
     # Zero-amount entry recording an expiration date extension
     EXTEND = "EXTEND"


class Transaction(Base):
     """
     Immutable ledger entry. Amount is signed: positive for ISSUE and upward
     ADJUST, negative for REDEEM, downward ADJUST, CANCEL and EXPIRE, zero
     for EXTEND.
     """
     __tablename__ = "transactions"

     id = Column(Integer, primary_key=True, autoincrement=True)
     credit_id = Column(
          Integer,
          ForeignKey("credits.id", ondelete="RESTRICT"),  # Credits are never deleted
          nullable=False,
          index=True
     )
     customer_id = Column(String(64), nullable=True, index=True)  # Denormalized from the credit

     type = Column(
          Enum(TransactionType, name="transaction_type", create_constraint=True),
          nullable=False,
          index=True
     )
     amount = Column(Numeric(12, 2), nullable=False)
     balance_after = Column(Numeric(12, 2), nullable=False)

     # Provenance
     staff_id = Column(String(64), nullable=True, index=True)
     location_id = Column(String(64), nullable=True, index=True)
     order_id = Column(String(64), nullable=True, index=True)
     order_number = Column(String(64), nullable=True)
     note = Column(Text, nullable=True)

     # Only set on EXTEND entries
     previous_expiration_date = Column(DateTime, nullable=True)
     new_expiration_date = Column(DateTime, nullable=True)

     timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

     # Relationships
     credit = relationship("Credit", back_populates="transactions")

     def __repr__(self):
          return (
               f"<Transaction(id={self.id}, credit_id={self.credit_id}, type='{self.type.value}', "
               f"amount={self.amount}, balance_after={self.balance_after})>"
          )
