# services/ledger_store.py
"""
Ledger Store - persistence for credits and their transactions.

All balance mutations go through with_credit_lock(), which loads the credit
row with SELECT ... FOR UPDATE inside one database transaction, runs the
caller's function and commits. The credit row also carries a version counter
(SQLAlchemy version_id_col): if another writer got in between the read and
the write, the UPDATE matches zero rows and ConcurrentModificationError is
raised instead of silently overwriting the balance.

Transactions are append-only: this module only ever INSERTs them.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from models import Base, Credit, CreditStatus, Transaction, TransactionType
from utils.timeutils import utcnow
from .errors import CodeCollisionError, ConcurrentModificationError, CreditNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CREDIT_SORT_FIELDS = ("created_at", "updated_at", "original_amount", "balance", "expiration_date")
TRANSACTION_SORT_FIELDS = ("timestamp", "amount", "type")


def _order(column, sort_order: str):
     return asc(column) if sort_order == "asc" else desc(column)


def _is_code_violation(exc: IntegrityError) -> bool:
     """Unique violations on credits.code across dialects mention the column or constraint."""
     return "code" in str(exc.orig).lower()


class LedgerStore:
     """
     Data access layer for the credit ledger.

     Args:
          session_factory: sessionmaker bound to the ledger database
     """

     def __init__(self, session_factory: sessionmaker):
          self.session_factory = session_factory

     # ------------------------------------------------------------------
     # Unit-of-work primitives
     # ------------------------------------------------------------------

     @contextmanager
     def read_session(self) -> Iterator[Session]:
          """Short-lived session for read-only queries."""
          session = self.session_factory()
          try:
               yield session
          finally:
               session.close()

     def with_credit_lock(self, credit_id: int, fn: Callable[[Session, Credit], T]) -> T:
          """
          Run fn(session, credit) with exclusive access to one credit row.

          The balance read, the balance write and the transaction insert made
          by fn are committed together or not at all.

          Raises:
               CreditNotFoundError: if the credit does not exist
               ConcurrentModificationError: if the row changed under us
          """
          session = self.session_factory()
          try:
               with session.begin():
                    credit = session.execute(
                         select(Credit).where(Credit.id == credit_id).with_for_update()
                    ).scalar_one_or_none()
                    if credit is None:
                         raise CreditNotFoundError(f"Credit {credit_id} not found", credit_id=credit_id)
                    result = fn(session, credit)
                    session.flush()
               return result
          except StaleDataError as exc:
               logger.warning("Concurrent modification detected on credit %s", credit_id)
               raise ConcurrentModificationError(
                    f"Credit {credit_id} was modified concurrently",
                    credit_id=credit_id,
               ) from exc
          finally:
               session.close()

     def create_credit(self, fn: Callable[[Session], T]) -> T:
          """
          Run an insert unit in its own transaction.

          Raises:
               CodeCollisionError: if the unique constraint on credits.code fired
          """
          session = self.session_factory()
          try:
               with session.begin():
                    result = fn(session)
                    session.flush()
               return result
          except IntegrityError as exc:
               if _is_code_violation(exc):
                    raise CodeCollisionError("Credit code already exists") from exc
               raise
          finally:
               session.close()

     @staticmethod
     def append_transaction(
          session: Session,
          credit: Credit,
          type: TransactionType,
          amount: Decimal,
          timestamp: Optional[datetime] = None,
          **provenance,
     ) -> Transaction:
          """
          Append one ledger entry for a credit whose balance is already updated.

          balance_after is taken from the credit so the checkpoint always
          matches the row written in the same database transaction.
          """
          entry = Transaction(
               credit_id=credit.id,
               customer_id=credit.customer_id,
               type=type,
               amount=amount,
               balance_after=credit.balance,
               timestamp=timestamp or utcnow(),
               **provenance,
          )
          session.add(entry)
          return entry

     def create_schema(self) -> None:
          """Create tables directly (tests and local development)."""
          Base.metadata.create_all(bind=self.session_factory.kw["bind"])

     # ------------------------------------------------------------------
     # Reads
     # ------------------------------------------------------------------

     def get_credit(self, credit_id: int) -> Optional[Credit]:
          with self.read_session() as session:
               return session.get(Credit, credit_id)

     def get_credit_by_code(self, code: str) -> Optional[Credit]:
          with self.read_session() as session:
               return session.execute(select(Credit).where(Credit.code == code)).scalar_one_or_none()

     def code_exists(self, code: str) -> bool:
          with self.read_session() as session:
               return session.execute(select(Credit.id).where(Credit.code == code)).first() is not None

     def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
          with self.read_session() as session:
               return session.get(Transaction, transaction_id)

     def find_due_for_expiration(self, now: datetime, limit: Optional[int] = None) -> List[int]:
          """IDs of ACTIVE credits whose expiration date is at or before now."""
          query = (
               select(Credit.id)
               .where(
                    Credit.status == CreditStatus.ACTIVE,
                    Credit.expiration_date.is_not(None),
                    Credit.expiration_date <= now,
               )
               .order_by(Credit.expiration_date, Credit.id)
          )
          if limit:
               query = query.limit(limit)
          with self.read_session() as session:
               return list(session.execute(query).scalars())

     def find_expiring_between(self, start: datetime, end: datetime) -> List[Credit]:
          """ACTIVE credits with a positive balance expiring in [start, end)."""
          query = (
               select(Credit)
               .where(
                    Credit.status == CreditStatus.ACTIVE,
                    Credit.balance > 0,
                    Credit.expiration_date >= start,
                    Credit.expiration_date < end,
               )
               .order_by(Credit.expiration_date, Credit.id)
          )
          with self.read_session() as session:
               return list(session.execute(query).scalars())

     def list_credits(
          self,
          customer_id: Optional[str] = None,
          status: Optional[CreditStatus] = None,
          include_terminal: bool = True,
          expiring_after: Optional[datetime] = None,
          expiring_before: Optional[datetime] = None,
          sort_by: str = "created_at",
          sort_order: str = "desc",
          offset: int = 0,
          limit: int = 20,
     ) -> Tuple[List[Credit], int]:
          """
          Page through credits.

          Nothing is filtered implicitly: terminal credits are returned unless
          include_terminal is False.

          Returns:
               (credits on the page, total matching credits)
          """
          conditions = []
          if customer_id:
               conditions.append(Credit.customer_id == customer_id)
          if status is not None:
               conditions.append(Credit.status == status)
          if not include_terminal:
               conditions.append(Credit.status == CreditStatus.ACTIVE)
          if expiring_after is not None:
               conditions.append(Credit.expiration_date > expiring_after)
          if expiring_before is not None:
               conditions.append(Credit.expiration_date <= expiring_before)

          column = getattr(Credit, sort_by if sort_by in CREDIT_SORT_FIELDS else "created_at")
          query = (
               select(Credit)
               .where(*conditions)
               .order_by(_order(column, sort_order), _order(Credit.id, sort_order))
               .offset(offset)
               .limit(limit)
          )
          count_query = select(func.count(Credit.id)).where(*conditions)

          with self.read_session() as session:
               credits = list(session.execute(query).scalars())
               total = session.execute(count_query).scalar_one()
          return credits, total

     def _transaction_conditions(
          self,
          credit_id: Optional[int] = None,
          customer_id: Optional[str] = None,
          types: Optional[Sequence[TransactionType]] = None,
          staff_id: Optional[str] = None,
          location_id: Optional[str] = None,
          order_id: Optional[str] = None,
          currency: Optional[str] = None,
          date_from: Optional[datetime] = None,
          date_to: Optional[datetime] = None,
     ) -> list:
          conditions = []
          if credit_id is not None:
               conditions.append(Transaction.credit_id == credit_id)
          if customer_id:
               conditions.append(Transaction.customer_id == customer_id)
          if types:
               conditions.append(Transaction.type.in_(list(types)))
          if staff_id:
               conditions.append(Transaction.staff_id == staff_id)
          if location_id:
               conditions.append(Transaction.location_id == location_id)
          if order_id:
               conditions.append(Transaction.order_id == order_id)
          if currency:
               conditions.append(
                    Transaction.credit_id.in_(select(Credit.id).where(Credit.currency == currency))
               )
          if date_from is not None:
               conditions.append(Transaction.timestamp >= date_from)
          if date_to is not None:
               conditions.append(Transaction.timestamp <= date_to)
          return conditions

     def list_transactions(
          self,
          sort_by: str = "timestamp",
          sort_order: str = "desc",
          offset: int = 0,
          limit: int = 20,
          **filters,
     ) -> Tuple[List[Transaction], int]:
          """
          Page through transactions matching the filters.

          Returns:
               (transactions on the page, total matching transactions)
          """
          conditions = self._transaction_conditions(**filters)
          column = getattr(Transaction, sort_by if sort_by in TRANSACTION_SORT_FIELDS else "timestamp")
          query = (
               select(Transaction)
               .where(*conditions)
               .order_by(_order(column, sort_order), _order(Transaction.id, sort_order))
               .offset(offset)
               .limit(limit)
          )
          count_query = select(func.count(Transaction.id)).where(*conditions)

          with self.read_session() as session:
               transactions = list(session.execute(query).scalars())
               total = session.execute(count_query).scalar_one()
          return transactions, total

     def query_transactions(self, **filters) -> List[Transaction]:
          """All transactions matching the filters, oldest first."""
          query = (
               select(Transaction)
               .where(*self._transaction_conditions(**filters))
               .order_by(Transaction.timestamp, Transaction.id)
          )
          with self.read_session() as session:
               return list(session.execute(query).scalars())

     def transactions_for_credit(self, credit_id: int, until: Optional[datetime] = None) -> List[Transaction]:
          """Ledger of one credit in append order, optionally cut off at a point in time."""
          return self.query_transactions(credit_id=credit_id, date_to=until)

     def currencies_for(self, credit_ids: Sequence[int]) -> dict:
          """Map credit id -> currency for the given credits."""
          if not credit_ids:
               return {}
          with self.read_session() as session:
               rows = session.execute(
                    select(Credit.id, Credit.currency).where(Credit.id.in_(list(credit_ids)))
               ).all()
          return {row.id: row.currency for row in rows}

     def count_credits_by_status(self) -> dict:
          with self.read_session() as session:
               rows = session.execute(
                    select(Credit.status, func.count(Credit.id), func.coalesce(func.sum(Credit.balance), 0))
                    .group_by(Credit.status)
               ).all()
          return {status: (count, Decimal(str(balance))) for status, count, balance in rows}
