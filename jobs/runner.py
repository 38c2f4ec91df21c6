# jobs/runner.py
import logging
from typing import Optional

from services.credit_engine import CreditEngine
from services.expiration_sweeper import ExpirationSweeper
from services.notification_service import NotificationDispatcher
from .definitions import ExpirationReminderJob, ExpireSweepJob, IssueJob, Job, NotifyJob

logger = logging.getLogger(__name__)


class JobRunner:
     """
     Executes background jobs against the ledger services.

     Args:
          engine: Lifecycle engine
          sweeper: Expiration sweeper (built from the engine when omitted)
          dispatcher: Notification dispatcher (the engine's when omitted)
     """

     def __init__(
          self,
          engine: CreditEngine,
          sweeper: Optional[ExpirationSweeper] = None,
          dispatcher: Optional[NotificationDispatcher] = None,
     ):
          self.engine = engine
          self.dispatcher = dispatcher or engine.dispatcher
          self.sweeper = sweeper or ExpirationSweeper(engine, dispatcher=self.dispatcher)

     def run(self, job: Job):
          """
          Run one job and return its result.

          Returns:
               IssueJob -> LedgerResult
               ExpireSweepJob -> SweepResult
               NotifyJob -> bool (delivered)
               ExpirationReminderJob -> int (reminders sent)
          """
          logger.info("Running job %s", type(job).__name__)

          if isinstance(job, IssueJob):
               return self.engine.issue(
                    customer_id=job.customer_id,
                    amount=job.amount,
                    currency=job.currency,
                    expiration_date=job.expiration_date,
                    note=job.note,
                    staff_id=job.staff_id,
                    location_id=job.location_id,
               )
          if isinstance(job, ExpireSweepJob):
               return self.sweeper.sweep_expired(now=job.now)
          if isinstance(job, NotifyJob):
               if self.dispatcher is None:
                    logger.warning("No notification dispatcher configured; dropping %r", job.event)
                    return False
               return self.dispatcher.deliver(job.event)
          if isinstance(job, ExpirationReminderJob):
               return self.sweeper.send_expiration_reminders(job.days, now=job.now)

          raise TypeError(f"Unknown job type: {type(job).__name__}")
