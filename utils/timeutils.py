# utils/timeutils.py
"""
UTC clock helpers.

The ledger stores naive UTC datetimes (the DateTime columns carry no zone),
so every datetime entering the engine is normalized here first.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
     """Current UTC time as a naive datetime."""
     return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
     """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
     if value is None:
          return None
     if value.tzinfo is None:
          return value
     return value.astimezone(timezone.utc).replace(tzinfo=None)


def serialize_utc(value: Optional[datetime]) -> Optional[str]:
     """ISO8601 string with an explicit UTC offset."""
     if value is None:
          return None
     if value.tzinfo is None:
          value = value.replace(tzinfo=timezone.utc)
     else:
          value = value.astimezone(timezone.utc)
     return value.isoformat()
