# jobs/scheduler.py
"""
Cron scheduling for ledger jobs (APScheduler).

Jobs run on a BackgroundScheduler thread in the API process. Each run goes
through JobRunner, so a scheduled sweep behaves exactly like a manual one.
"""
import logging
from typing import Iterable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .definitions import ExpirationReminderJob, ExpireSweepJob
from .runner import JobRunner

logger = logging.getLogger(__name__)

EXPIRATION_SWEEP_JOB_ID = "credit_expiration_job"
EXPIRATION_REMINDER_JOB_ID = "credit_expiration_reminder_{days}d_job"


def build_scheduler(
     runner: JobRunner,
     sweep_cron: str = "0 3 * * *",
     reminder_cron: str = "0 9 * * *",
     reminder_days: Iterable[int] = (7, 1),
     timezone: str = "UTC",
) -> BackgroundScheduler:
     """
     Create (but do not start) the scheduler with the ledger's recurring jobs.

     Args:
          runner: JobRunner executing each job
          sweep_cron: Crontab expression for the expiration sweep
          reminder_cron: Crontab expression for the reminder batches
          reminder_days: One reminder batch per entry (days before expiration)
     """
     scheduler = BackgroundScheduler(timezone=timezone)

     # Expiration sweep - runs daily at 03:00 UTC by default
     scheduler.add_job(
          runner.run,
          CronTrigger.from_crontab(sweep_cron, timezone=timezone),
          args=[ExpireSweepJob()],
          id=EXPIRATION_SWEEP_JOB_ID,
          replace_existing=True,
          max_instances=1,
          coalesce=True,
     )

     for days in reminder_days:
          scheduler.add_job(
               runner.run,
               CronTrigger.from_crontab(reminder_cron, timezone=timezone),
               args=[ExpirationReminderJob(days=days)],
               id=EXPIRATION_REMINDER_JOB_ID.format(days=days),
               replace_existing=True,
               max_instances=1,
               coalesce=True,
          )

     logger.info(
          "Credit scheduler configured: sweep '%s', reminders '%s' for %s days",
          sweep_cron, reminder_cron, ", ".join(str(d) for d in reminder_days),
     )
     return scheduler
