# services/credit_engine.py
"""
Credit Lifecycle Engine - business rules for store credits.

Status machine:
     ACTIVE -> USED       (balance reaches zero through redeem or adjust)
     ACTIVE -> CANCELLED  (cancel)
     ACTIVE -> EXPIRED    (expire, called by the expiration sweeper)
USED, EXPIRED and CANCELLED are terminal.

Every mutating operation runs inside LedgerStore.with_credit_lock(): checks
happen before anything is modified, and the balance update plus its single
ledger entry are committed together. Notification events come back in the
LedgerResult and are dispatched only after the commit.
"""
import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from sqlalchemy.orm import Session

from config import LedgerSettings
from models import Credit, CreditStatus, TransactionType
from utils.metrics import NullMetrics
from utils.timeutils import to_naive_utc, utcnow
from .code_generator import CodeGenerator, normalize_code
from .errors import (
     AdjustmentOutOfRangeError,
     AlreadyTerminalError,
     CodeCollisionError,
     CodeGenerationExhaustedError,
     ConcurrentModificationError,
     CreditNotActiveError,
     CreditNotFoundError,
     ExpirationNotDueError,
     InsufficientBalanceError,
     InvalidAmountError,
     InvalidCurrencyError,
     InvalidExpirationDateError,
)
from .events import CreditExpired, CreditIssued, CreditRedeemed, LedgerResult
from .ledger_store import LedgerStore
from .notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def parse_amount(value) -> Decimal:
     """
     Convert a caller-supplied amount to a 2-place Decimal.

     Raises:
          InvalidAmountError: if the value is not a finite number with at most 2 decimals
     """
     try:
          amount = Decimal(str(value))
     except (InvalidOperation, ValueError, TypeError):
          raise InvalidAmountError(f"Invalid amount: {value!r}")
     if not amount.is_finite():
          raise InvalidAmountError(f"Invalid amount: {value!r}")
     if amount != amount.quantize(TWO_PLACES):
          raise InvalidAmountError(f"Amount {value} has more than 2 decimal places")
     return amount.quantize(TWO_PLACES)


class CreditEngine:
     """
     Issue, redeem, adjust, cancel, extend and expire store credits.

     The engine keeps no state between calls; one instance can be shared by
     every request thread and job.
     """

     def __init__(
          self,
          store: LedgerStore,
          settings: Optional[LedgerSettings] = None,
          code_generator: Optional[CodeGenerator] = None,
          dispatcher: Optional[NotificationDispatcher] = None,
          metrics=None,
          clock: Callable[[], datetime] = utcnow,
     ):
          self.store = store
          self.settings = settings or LedgerSettings()
          self.code_generator = code_generator or CodeGenerator(
               prefix=self.settings.code_prefix,
               max_attempts=self.settings.code_max_attempts,
          )
          self.dispatcher = dispatcher
          self.metrics = metrics or NullMetrics()
          self.clock = clock

     # ------------------------------------------------------------------
     # Helpers
     # ------------------------------------------------------------------

     def _positive_amount(self, value) -> Decimal:
          amount = parse_amount(value)
          if amount <= 0:
               raise InvalidAmountError(f"Amount must be greater than zero, got {amount}")
          return amount

     def _currency(self, currency: Optional[str]) -> str:
          value = (currency or self.settings.default_currency).strip().upper()
          if not CURRENCY_PATTERN.match(value):
               raise InvalidCurrencyError(f"Invalid currency code: {currency!r}")
          return value

     @staticmethod
     def _require_active(credit: Credit) -> None:
          if not credit.is_active:
               raise CreditNotActiveError(
                    f"Credit {credit.id} is {credit.status.value.lower()}",
                    credit_id=credit.id,
               )

     def _dispatch(self, result: LedgerResult) -> LedgerResult:
          if self.dispatcher is not None and result.events:
               self.dispatcher.dispatch(result.events)
          return result

     def _run_locked(self, credit_id: int, fn: Callable[[Session, Credit], LedgerResult]) -> LedgerResult:
          """Run fn under the credit lock, retrying only on concurrent modification."""
          attempt = 0
          while True:
               attempt += 1
               try:
                    return self.store.with_credit_lock(credit_id, fn)
               except ConcurrentModificationError:
                    if attempt > self.settings.max_concurrency_retries:
                         logger.error("Giving up on credit %s after %d concurrent modifications", credit_id, attempt)
                         raise
                    logger.warning("Retrying credit %s after concurrent modification (attempt %d)", credit_id, attempt)

     def _mutate(self, operation: str, credit_id: int, fn: Callable[[Session, Credit], LedgerResult]) -> LedgerResult:
          with self.metrics.timed(operation):
               result = self._run_locked(credit_id, fn)
          return self._dispatch(result)

     # ------------------------------------------------------------------
     # Reads
     # ------------------------------------------------------------------

     def get_credit(self, credit_id: int) -> Credit:
          credit = self.store.get_credit(credit_id)
          if credit is None:
               raise CreditNotFoundError(f"Credit {credit_id} not found", credit_id=credit_id)
          return credit

     def get_credit_by_code(self, code: str) -> Credit:
          """Look up a credit by its redemption code; malformed codes are never found."""
          normalized = normalize_code(code)
          if not self.code_generator.validate(normalized):
               logger.warning("Invalid credit code format: %s", code)
               raise CreditNotFoundError(f"Credit code {code} not found")
          credit = self.store.get_credit_by_code(normalized)
          if credit is None:
               raise CreditNotFoundError(f"Credit code {code} not found")
          return credit

     # ------------------------------------------------------------------
     # Issue
     # ------------------------------------------------------------------

     def issue(
          self,
          customer_id: Optional[str],
          amount,
          currency: Optional[str] = None,
          expiration_date: Optional[datetime] = None,
          note: Optional[str] = None,
          staff_id: Optional[str] = None,
          location_id: Optional[str] = None,
     ) -> LedgerResult:
          """
          Issue a new ACTIVE credit with balance equal to amount.

          Raises:
               InvalidAmountError: if amount <= 0
               InvalidCurrencyError: if currency is not a 3-letter code
               InvalidExpirationDateError: if expiration_date is not in the future
               CodeGenerationExhaustedError: if no unique code could be found
          """
          amount = self._positive_amount(amount)
          currency = self._currency(currency)
          expiration_date = to_naive_utc(expiration_date)
          if expiration_date is not None and expiration_date <= self.clock():
               raise InvalidExpirationDateError("Expiration date must be in the future")

          with self.metrics.timed("issue"):
               result = self._insert_with_unique_code(
                    customer_id=customer_id,
                    amount=amount,
                    currency=currency,
                    expiration_date=expiration_date,
                    note=note,
                    staff_id=staff_id,
                    location_id=location_id,
               )

          logger.info("Credit issued: %s with code %s", result.credit.id, result.credit.code)
          return self._dispatch(result)

     def _insert_with_unique_code(self, **fields) -> LedgerResult:
          # The unique constraint can still fire if another issuer won the race
          # between the existence check and the insert.
          for attempt in range(1, self.code_generator.max_attempts + 1):
               code = self.code_generator.generate(self.store.code_exists)
               try:
                    return self.store.create_credit(
                         lambda session, code=code: self._insert_credit(session, code, **fields)
                    )
               except CodeCollisionError:
                    logger.warning("Credit code %s taken at insert (attempt %d)", code, attempt)

          raise CodeGenerationExhaustedError(
               f"Could not store a unique credit code after {self.code_generator.max_attempts} attempts"
          )

     def _insert_credit(
          self,
          session: Session,
          code: str,
          customer_id: Optional[str],
          amount: Decimal,
          currency: str,
          expiration_date: Optional[datetime],
          note: Optional[str],
          staff_id: Optional[str],
          location_id: Optional[str],
     ) -> LedgerResult:
          now = self.clock()
          credit = Credit(
               code=code,
               original_amount=amount,
               balance=amount,  # Initially, balance equals the full amount
               currency=currency,
               status=CreditStatus.ACTIVE,
               expiration_date=expiration_date,
               customer_id=customer_id,
               note=note,
               created_at=now,
               updated_at=now,
          )
          session.add(credit)
          session.flush()  # Assigns credit.id for the ledger entry

          entry = self.store.append_transaction(
               session,
               credit,
               TransactionType.ISSUE,
               amount,
               timestamp=now,
               staff_id=staff_id,
               location_id=location_id,
               note=note or "Credit issued",
          )
          session.flush()
          return LedgerResult(credit=credit, transaction=entry, events=[CreditIssued(credit.id)])

     # ------------------------------------------------------------------
     # Redeem
     # ------------------------------------------------------------------

     def redeem(
          self,
          credit_id: int,
          amount,
          order_id: Optional[str] = None,
          order_number: Optional[str] = None,
          staff_id: Optional[str] = None,
          location_id: Optional[str] = None,
          note: Optional[str] = None,
     ) -> LedgerResult:
          """
          Apply part or all of a credit's balance, typically against an order.

          A balance of exactly zero afterwards moves the credit to USED.

          Raises:
               InvalidAmountError: if amount <= 0
               CreditNotActiveError: if the credit is not ACTIVE or is past its expiration date
               InsufficientBalanceError: if amount exceeds the balance
          """
          amount = self._positive_amount(amount)

          def apply(session: Session, credit: Credit) -> LedgerResult:
               now = self.clock()
               self._require_active(credit)
               if credit.is_past_due(now):
                    # Left for the sweeper; redeeming must not mutate anything
                    raise CreditNotActiveError(f"Credit {credit.id} has expired", credit_id=credit.id)
               if amount > credit.balance:
                    raise InsufficientBalanceError(
                         f"Insufficient balance. Available: {credit.balance}, Requested: {amount}",
                         credit_id=credit.id,
                    )

               credit.balance = credit.balance - amount
               if credit.balance == 0:
                    credit.status = CreditStatus.USED
               credit.updated_at = now

               entry = self.store.append_transaction(
                    session,
                    credit,
                    TransactionType.REDEEM,
                    -amount,
                    timestamp=now,
                    order_id=order_id,
                    order_number=order_number,
                    staff_id=staff_id,
                    location_id=location_id,
                    note=note,
               )
               session.flush()
               return LedgerResult(credit=credit, transaction=entry, events=[CreditRedeemed(credit.id, entry.id)])

          result = self._mutate("redeem", credit_id, apply)
          logger.info(
               "Credit %s redeemed: %s, new balance: %s, status: %s",
               credit_id, amount, result.credit.balance, result.credit.status.value,
          )
          return result

     def redeem_by_code(self, code: str, amount, **kwargs) -> LedgerResult:
          """Redeem a credit identified by its redemption code."""
          credit = self.get_credit_by_code(code)
          return self.redeem(credit.id, amount, **kwargs)

     # ------------------------------------------------------------------
     # Adjust
     # ------------------------------------------------------------------

     def adjust(self, credit_id: int, delta, reason: str, staff_id: Optional[str] = None) -> LedgerResult:
          """
          Increase or decrease the balance of an ACTIVE credit.

          The result must stay within [0, original_amount]; the upper bound is
          lifted when allow_adjust_above_original is set. original_amount
          itself never changes.

          Raises:
               InvalidAmountError: if delta is zero
               CreditNotActiveError: if the credit is not ACTIVE
               AdjustmentOutOfRangeError: if the resulting balance is out of range
          """
          delta = parse_amount(delta)
          if delta == 0:
               raise InvalidAmountError("Adjustment amount must not be zero")

          def apply(session: Session, credit: Credit) -> LedgerResult:
               now = self.clock()
               self._require_active(credit)

               new_balance = credit.balance + delta
               if new_balance < 0:
                    raise AdjustmentOutOfRangeError(
                         f"Adjustment would result in negative balance. "
                         f"Current balance: {credit.balance}, Adjustment: {delta}",
                         credit_id=credit.id,
                    )
               if new_balance > credit.original_amount and not self.settings.allow_adjust_above_original:
                    raise AdjustmentOutOfRangeError(
                         f"Adjustment would exceed the original amount {credit.original_amount}. "
                         f"Current balance: {credit.balance}, Adjustment: {delta}",
                         credit_id=credit.id,
                    )

               credit.balance = new_balance
               if new_balance == 0:
                    credit.status = CreditStatus.USED
               credit.updated_at = now

               entry = self.store.append_transaction(
                    session,
                    credit,
                    TransactionType.ADJUST,
                    delta,
                    timestamp=now,
                    staff_id=staff_id,
                    note=reason,
               )
               session.flush()
               return LedgerResult(credit=credit, transaction=entry)

          result = self._mutate("adjust", credit_id, apply)
          logger.info(
               "Credit %s adjusted by %s. New balance: %s. Reason: %s",
               credit_id, delta, result.credit.balance, reason,
          )
          return result

     # ------------------------------------------------------------------
     # Cancel
     # ------------------------------------------------------------------

     def cancel(self, credit_id: int, reason: str, staff_id: Optional[str] = None) -> LedgerResult:
          """
          Cancel an ACTIVE credit, writing off its remaining balance.

          Raises:
               AlreadyTerminalError: if the credit is USED, EXPIRED or CANCELLED
          """

          def apply(session: Session, credit: Credit) -> LedgerResult:
               now = self.clock()
               if credit.is_terminal:
                    raise AlreadyTerminalError(
                         f"Credit {credit.id} is already {credit.status.value.lower()}",
                         credit_id=credit.id,
                    )

               remaining = credit.balance
               credit.balance = Decimal("0.00")
               credit.status = CreditStatus.CANCELLED
               credit.updated_at = now

               entry = self.store.append_transaction(
                    session,
                    credit,
                    TransactionType.CANCEL,
                    -remaining,
                    timestamp=now,
                    staff_id=staff_id,
                    note=reason,
               )
               session.flush()
               return LedgerResult(credit=credit, transaction=entry)

          result = self._mutate("cancel", credit_id, apply)
          logger.info("Credit %s cancelled. Reason: %s", credit_id, reason)
          return result

     # ------------------------------------------------------------------
     # Extend expiration
     # ------------------------------------------------------------------

     def extend_expiration(
          self,
          credit_id: int,
          new_expiration_date: datetime,
          reason: str,
          staff_id: Optional[str] = None,
     ) -> LedgerResult:
          """
          Move the expiration date of an ACTIVE credit further out.

          Recorded as a zero-amount EXTEND entry so the change stays in the
          credit's single audit trail.

          Raises:
               CreditNotActiveError: if the credit is not ACTIVE
               InvalidExpirationDateError: if the new date is not later than
                    both the current expiration date and now, or the credit
                    never expires
          """
          new_expiration_date = to_naive_utc(new_expiration_date)
          if new_expiration_date is None:
               raise InvalidExpirationDateError("New expiration date is required")

          def apply(session: Session, credit: Credit) -> LedgerResult:
               now = self.clock()
               self._require_active(credit)
               if credit.expiration_date is None:
                    raise InvalidExpirationDateError(
                         f"Credit {credit.id} does not expire", credit_id=credit.id
                    )
               if new_expiration_date <= credit.expiration_date:
                    raise InvalidExpirationDateError(
                         f"New expiration date must be later than {credit.expiration_date.isoformat()}",
                         credit_id=credit.id,
                    )
               if new_expiration_date <= now:
                    raise InvalidExpirationDateError(
                         "New expiration date must be in the future", credit_id=credit.id
                    )

               previous = credit.expiration_date
               credit.expiration_date = new_expiration_date
               credit.updated_at = now

               entry = self.store.append_transaction(
                    session,
                    credit,
                    TransactionType.EXTEND,
                    Decimal("0.00"),
                    timestamp=now,
                    staff_id=staff_id,
                    note=reason,
                    previous_expiration_date=previous,
                    new_expiration_date=new_expiration_date,
               )
               session.flush()
               return LedgerResult(credit=credit, transaction=entry)

          result = self._mutate("extend_expiration", credit_id, apply)
          logger.info(
               "Credit %s expiration extended to %s. Reason: %s",
               credit_id, new_expiration_date.isoformat(), reason,
          )
          return result

     # ------------------------------------------------------------------
     # Expire (sweeper only)
     # ------------------------------------------------------------------

     def expire(self, credit_id: int, now: Optional[datetime] = None) -> LedgerResult:
          """
          Expire a past-due ACTIVE credit, writing off its remaining balance.

          Raises:
               CreditNotActiveError: if the credit is no longer ACTIVE
               ExpirationNotDueError: if the expiration date is still ahead of now
          """
          cutoff = to_naive_utc(now)

          def apply(session: Session, credit: Credit) -> LedgerResult:
               current = cutoff or self.clock()
               self._require_active(credit)
               if not credit.is_past_due(current):
                    raise ExpirationNotDueError(
                         f"Credit {credit.id} is not due for expiration", credit_id=credit.id
                    )

               remaining = credit.balance
               credit.balance = Decimal("0.00")
               credit.status = CreditStatus.EXPIRED
               credit.updated_at = self.clock()

               entry = self.store.append_transaction(
                    session,
                    credit,
                    TransactionType.EXPIRE,
                    -remaining,
                    timestamp=credit.updated_at,
                    note="Credit expired",
               )
               session.flush()
               return LedgerResult(credit=credit, transaction=entry, events=[CreditExpired(credit.id, entry.id)])

          return self._mutate("expire", credit_id, apply)
