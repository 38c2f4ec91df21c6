# models/__init__.py
from .base import Base
from .credit import Credit, CreditStatus
from .transaction import Transaction, TransactionType

__all__ = [
     "Base",
     "Credit",
     "CreditStatus",
     "Transaction",
     "TransactionType",
]
