from .definitions import ExpirationReminderJob, ExpireSweepJob, IssueJob, Job, NotifyJob
from .runner import JobRunner
from .scheduler import build_scheduler

__all__ = [
     "ExpirationReminderJob",
     "ExpireSweepJob",
     "IssueJob",
     "Job",
     "NotifyJob",
     "JobRunner",
     "build_scheduler",
]
