# services/expiration_sweeper.py
"""
Expiration Sweeper - scheduled batch job.

Expires ACTIVE credits whose expiration date has passed, one credit at a
time through CreditEngine.expire(), and sends "expiring soon" reminders.
A failure on one credit is recorded and the batch moves on. Running the
sweep again is harmless: expired credits are no longer ACTIVE, so the
query does not return them.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from utils.timeutils import to_naive_utc
from .credit_engine import CreditEngine
from .errors import CreditNotActiveError, ExpirationNotDueError
from .events import CreditExpiring
from .notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SweepFailure:
     credit_id: int
     error: Exception

     @property
     def message(self) -> str:
          return f"{type(self.error).__name__}: {self.error}"


@dataclass
class SweepResult:
     expired_count: int = 0
     skipped_count: int = 0
     failures: List[SweepFailure] = field(default_factory=list)

     @property
     def ok(self) -> bool:
          return not self.failures


class ExpirationSweeper:
     """
     Batch expiration and expiration reminders.

     Args:
          engine: Lifecycle engine used for every state change
          dispatcher: Receives "expiring soon" events; defaults to the engine's dispatcher
          batch_limit: Maximum number of credits handled per sweep (None = all)
     """

     def __init__(
          self,
          engine: CreditEngine,
          dispatcher: Optional[NotificationDispatcher] = None,
          batch_limit: Optional[int] = None,
     ):
          self.engine = engine
          self.store = engine.store
          self.dispatcher = dispatcher or engine.dispatcher
          self.batch_limit = batch_limit

     def sweep_expired(self, now: Optional[datetime] = None) -> SweepResult:
          """
          Expire every ACTIVE credit with expiration_date <= now.

          Returns:
               SweepResult with the number of expired credits and per-credit failures
          """
          now = to_naive_utc(now) or self.engine.clock()
          result = SweepResult()

          with self.engine.metrics.timed("sweep_expired"):
               credit_ids = self.store.find_due_for_expiration(now, limit=self.batch_limit)
               if not credit_ids:
                    logger.info("No expired credits to process")
                    return result

               for credit_id in credit_ids:
                    try:
                         self.engine.expire(credit_id, now=now)
                         result.expired_count += 1
                    except (CreditNotActiveError, ExpirationNotDueError):
                         # Changed by another caller since the query ran
                         result.skipped_count += 1
                    except Exception as exc:
                         logger.error("Failed to expire credit %s: %s", credit_id, exc)
                         result.failures.append(SweepFailure(credit_id=credit_id, error=exc))

          logger.info(
               "Processed expired credits: %d expired, %d skipped, %d failed",
               result.expired_count, result.skipped_count, len(result.failures),
          )
          return result

     def send_expiration_reminders(self, days: int, now: Optional[datetime] = None) -> int:
          """
          Notify about credits expiring on the calendar day ``days`` from now.

          Returns:
               Number of reminders handed to the notification hook
          """
          if days < 0:
               raise ValueError("days must not be negative")
          now = to_naive_utc(now) or self.engine.clock()
          start = datetime(now.year, now.month, now.day) + timedelta(days=days)
          end = start + timedelta(days=1)

          credits = self.store.find_expiring_between(start, end)
          logger.info("Found %d credits expiring in %d days", len(credits), days)
          if self.dispatcher is None:
               return 0

          sent = 0
          for credit in credits:
               if self.dispatcher.deliver(CreditExpiring(credit_id=credit.id, days_until=days)):
                    sent += 1
          return sent
