# jobs/definitions.py
"""
Background job payloads.

A job is plain data; JobRunner decides what to do with it. Adding a new job
type means adding a dataclass here, extending the Job union and teaching
the runner about it.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from services.events import LedgerEvent


@dataclass(frozen=True)
class IssueJob:
     """Issue a credit outside a request (bulk imports, refunds)."""
     customer_id: Optional[str]
     amount: Decimal
     currency: Optional[str] = None
     expiration_date: Optional[datetime] = None
     note: Optional[str] = None
     staff_id: Optional[str] = None
     location_id: Optional[str] = None


@dataclass(frozen=True)
class ExpireSweepJob:
     """Expire every ACTIVE credit that is past due at ``now``."""
     now: Optional[datetime] = None


@dataclass(frozen=True)
class NotifyJob:
     """Deliver one ledger event to the notification hook."""
     event: LedgerEvent


@dataclass(frozen=True)
class ExpirationReminderJob:
     """Send "expiring soon" reminders for credits expiring in ``days`` days."""
     days: int
     now: Optional[datetime] = None


Job = Union[IssueJob, ExpireSweepJob, NotifyJob, ExpirationReminderJob]
