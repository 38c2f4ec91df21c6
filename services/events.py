# services/events.py
"""
Ledger events and operation results.

Engine operations never call notification code directly. They return the
events they produced next to the mutated credit, and the dispatcher delivers
them once the database transaction has committed.
"""
from dataclasses import dataclass, field
from typing import List, Union

from models import Credit, Transaction


@dataclass(frozen=True)
class CreditIssued:
     credit_id: int


@dataclass(frozen=True)
class CreditRedeemed:
     credit_id: int
     transaction_id: int


@dataclass(frozen=True)
class CreditExpiring:
     credit_id: int
     days_until: int


@dataclass(frozen=True)
class CreditExpired:
     credit_id: int
     transaction_id: int


LedgerEvent = Union[CreditIssued, CreditRedeemed, CreditExpiring, CreditExpired]


@dataclass
class LedgerResult:
     """Outcome of one committed engine operation."""
     credit: Credit
     transaction: Transaction
     events: List[LedgerEvent] = field(default_factory=list)
