# services/reporting_service.py
"""
Reporting projection - read-only views over the ledger.

Everything here is computed on demand from credits and transactions, so it
is consistent with the ledger by construction and never writes.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from config import LedgerSettings
from models import Credit, CreditStatus, Transaction, TransactionType
from utils.timeutils import to_naive_utc, utcnow
from .errors import CreditNotFoundError, TransactionNotFoundError
from .ledger_store import LedgerStore

GROUP_BY_OPTIONS = ("type", "day", "week", "month", "location", "staff", "currency")
TIME_SERIES_GROUPS = ("day", "week", "month")
ZERO = Decimal("0.00")


@dataclass
class Page:
     items: list
     total: int
     page: int
     limit: int

     @property
     def total_pages(self) -> int:
          return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class AggregateBucket:
     key: Optional[str]
     count: int = 0
     total_amount: Decimal = ZERO


@dataclass
class AggregateReport:
     group_by: str
     is_time_series: bool
     buckets: List[AggregateBucket] = field(default_factory=list)
     date_from: Optional[datetime] = None
     date_to: Optional[datetime] = None

     @property
     def total_count(self) -> int:
          return sum(bucket.count for bucket in self.buckets)

     @property
     def total_amount(self) -> Decimal:
          return sum((bucket.total_amount for bucket in self.buckets), ZERO)


@dataclass
class CreditStats:
     total_credits: int
     active_credits: int
     used_credits: int
     expired_credits: int
     cancelled_credits: int
     outstanding_balance: Decimal
     issued_amount: Decimal
     redeemed_amount: Decimal
     issued_in_period: int
     issued_in_previous_period: int

     @property
     def issued_trend(self) -> Optional[float]:
          """Percentage change of credits issued versus the previous period."""
          if self.issued_in_previous_period == 0:
               return None
          change = self.issued_in_period - self.issued_in_previous_period
          return round(change / self.issued_in_previous_period * 100, 1)


def _offset(page: int, limit: int) -> int:
     if page < 1 or limit < 1:
          raise ValueError("page and limit must be positive")
     return (page - 1) * limit


def _bucket_key(entry: Transaction, group_by: str, currencies: Dict[int, str]) -> Optional[str]:
     if group_by == "type":
          return entry.type.value
     if group_by == "day":
          return entry.timestamp.strftime("%Y-%m-%d")
     if group_by == "week":
          year, week, _ = entry.timestamp.isocalendar()
          return f"{year}-W{week:02d}"
     if group_by == "month":
          return entry.timestamp.strftime("%Y-%m")
     if group_by == "location":
          return entry.location_id
     if group_by == "staff":
          return entry.staff_id
     if group_by == "currency":
          return currencies.get(entry.credit_id)
     raise ValueError(f"Unsupported group_by: {group_by}")


class ReportingService:
     """Read-only queries for dashboards and audits."""

     def __init__(self, store: LedgerStore, settings: Optional[LedgerSettings] = None):
          self.store = store
          self.settings = settings or LedgerSettings()

     # ------------------------------------------------------------------
     # Listings
     # ------------------------------------------------------------------

     def list_credits(
          self,
          customer_id: Optional[str] = None,
          status: Optional[CreditStatus] = None,
          include_terminal: bool = True,
          page: int = 1,
          limit: int = 20,
          sort_by: str = "created_at",
          sort_order: str = "desc",
     ) -> Page:
          credits, total = self.store.list_credits(
               customer_id=customer_id,
               status=status,
               include_terminal=include_terminal,
               sort_by=sort_by,
               sort_order=sort_order,
               offset=_offset(page, limit),
               limit=limit,
          )
          return Page(items=credits, total=total, page=page, limit=limit)

     def expiring_credits(
          self,
          days: int = 30,
          now: Optional[datetime] = None,
          page: int = 1,
          limit: int = 20,
     ) -> Page:
          """ACTIVE credits expiring within the next ``days`` days, closest first."""
          now = to_naive_utc(now) or utcnow()
          credits, total = self.store.list_credits(
               status=CreditStatus.ACTIVE,
               expiring_after=now,
               expiring_before=now + timedelta(days=days),
               sort_by="expiration_date",
               sort_order="asc",
               offset=_offset(page, limit),
               limit=limit,
          )
          return Page(items=credits, total=total, page=page, limit=limit)

     def list_transactions(
          self,
          page: int = 1,
          limit: int = 20,
          sort_by: str = "timestamp",
          sort_order: str = "desc",
          **filters,
     ) -> Page:
          transactions, total = self.store.list_transactions(
               sort_by=sort_by,
               sort_order=sort_order,
               offset=_offset(page, limit),
               limit=limit,
               **filters,
          )
          return Page(items=transactions, total=total, page=page, limit=limit)

     def get_transaction(self, transaction_id: int) -> Transaction:
          entry = self.store.get_transaction(transaction_id)
          if entry is None:
               raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
          return entry

     def get_audit_log(self, entity_type: str, entity_id, page: int = 1, limit: int = 20) -> Page:
          """Ledger entries for one credit or one customer, newest first."""
          if entity_type == "credit":
               filters = {"credit_id": int(entity_id)}
          elif entity_type == "customer":
               filters = {"customer_id": str(entity_id)}
          else:
               raise ValueError('Invalid entity type: must be "credit" or "customer"')
          return self.list_transactions(page=page, limit=limit, **filters)

     # ------------------------------------------------------------------
     # Aggregates
     # ------------------------------------------------------------------

     def aggregate(
          self,
          group_by: str = "type",
          date_from: Optional[datetime] = None,
          date_to: Optional[datetime] = None,
          customer_id: Optional[str] = None,
          credit_id: Optional[int] = None,
          types: Optional[Sequence[TransactionType]] = None,
          staff_id: Optional[str] = None,
          location_id: Optional[str] = None,
          currency: Optional[str] = None,
     ) -> AggregateReport:
          """
          Count and sum transactions per group.

          Day, week and month groupings produce a time series sorted by bucket;
          the other groupings produce totals sorted by descending count.
          """
          if group_by not in GROUP_BY_OPTIONS:
               raise ValueError(f"group_by must be one of {', '.join(GROUP_BY_OPTIONS)}")
          date_from = to_naive_utc(date_from)
          date_to = to_naive_utc(date_to)

          entries = self.store.query_transactions(
               customer_id=customer_id,
               credit_id=credit_id,
               types=types,
               staff_id=staff_id,
               location_id=location_id,
               currency=currency.upper() if currency else None,
               date_from=date_from,
               date_to=date_to,
          )
          currencies = (
               self.store.currencies_for(sorted({entry.credit_id for entry in entries}))
               if group_by == "currency" else {}
          )

          buckets: Dict[Optional[str], AggregateBucket] = {}
          for entry in entries:
               key = _bucket_key(entry, group_by, currencies)
               bucket = buckets.setdefault(key, AggregateBucket(key=key))
               bucket.count += 1
               bucket.total_amount += Decimal(entry.amount)

          is_time_series = group_by in TIME_SERIES_GROUPS
          if is_time_series:
               ordered = sorted(buckets.values(), key=lambda b: b.key)
          else:
               ordered = sorted(buckets.values(), key=lambda b: (-b.count, b.key or ""))

          return AggregateReport(
               group_by=group_by,
               is_time_series=is_time_series,
               buckets=ordered,
               date_from=date_from,
               date_to=date_to,
          )

     def credit_stats(self, now: Optional[datetime] = None, period_days: int = 30) -> CreditStats:
          """Dashboard counters plus issuance trend against the previous period."""
          now = to_naive_utc(now) or utcnow()
          by_status = self.store.count_credits_by_status()

          def count(status: CreditStatus) -> int:
               return by_status.get(status, (0, ZERO))[0]

          period_start = now - timedelta(days=period_days)
          previous_start = period_start - timedelta(days=period_days)
          issues = self.store.query_transactions(types=[TransactionType.ISSUE], date_from=previous_start, date_to=now)
          issued_in_period = sum(1 for entry in issues if entry.timestamp > period_start)

          totals = self.aggregate(group_by="type", date_to=now)
          per_type = {bucket.key: bucket.total_amount for bucket in totals.buckets}

          return CreditStats(
               total_credits=sum(value[0] for value in by_status.values()),
               active_credits=count(CreditStatus.ACTIVE),
               used_credits=count(CreditStatus.USED),
               expired_credits=count(CreditStatus.EXPIRED),
               cancelled_credits=count(CreditStatus.CANCELLED),
               outstanding_balance=by_status.get(CreditStatus.ACTIVE, (0, ZERO))[1],
               issued_amount=per_type.get(TransactionType.ISSUE.value, ZERO),
               redeemed_amount=-per_type.get(TransactionType.REDEEM.value, ZERO),
               issued_in_period=issued_in_period,
               issued_in_previous_period=len(issues) - issued_in_period,
          )

     # ------------------------------------------------------------------
     # History reconstruction
     # ------------------------------------------------------------------

     def _require_credit(self, credit_id: int) -> Credit:
          credit = self.store.get_credit(credit_id)
          if credit is None:
               raise CreditNotFoundError(f"Credit {credit_id} not found", credit_id=credit_id)
          return credit

     def balance_at(self, credit_id: int, at: datetime) -> Optional[Decimal]:
          """
          Balance of a credit at a point in time.

          Returns None before the credit was issued. The balance_after
          checkpoint and the running sum of amounts must agree; a mismatch
          means the ledger is corrupt and raises RuntimeError.
          """
          self._require_credit(credit_id)
          entries = self.store.transactions_for_credit(credit_id, until=to_naive_utc(at))
          if not entries:
               return None
          running = sum((Decimal(entry.amount) for entry in entries), ZERO)
          checkpoint = Decimal(entries[-1].balance_after)
          if running != checkpoint:
               raise RuntimeError(
                    f"Ledger mismatch for credit {credit_id}: sum={running}, balance_after={checkpoint}"
               )
          return checkpoint

     def verify_credit(self, credit_id: int) -> Tuple[bool, str]:
          """
          Check the balance invariants of one credit.

          Returns:
               (success: bool, message: str)
          """
          credit = self._require_credit(credit_id)
          entries = self.store.transactions_for_credit(credit_id)
          if not entries:
               return False, "Credit has no ledger entries"
          if entries[0].type != TransactionType.ISSUE:
               return False, "First ledger entry is not ISSUE"

          balance = Decimal(credit.balance)
          original = Decimal(credit.original_amount)
          running = ZERO
          for entry in entries:
               running += Decimal(entry.amount)
               if running != Decimal(entry.balance_after):
                    return False, f"balance_after mismatch at transaction {entry.id}"

          if running != balance:
               return False, f"Sum of amounts {running} does not match balance {balance}"
          if balance < 0:
               return False, f"Negative balance {balance}"
          if balance > original and not self.settings.allow_adjust_above_original:
               return False, f"Balance {balance} exceeds original amount {original}"
          if credit.is_terminal and credit.status != CreditStatus.USED and balance != 0:
               return False, f"{credit.status.value} credit still holds {balance}"
          return True, "Verification passed"
