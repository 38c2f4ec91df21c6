# schemas/report.py
"""
Pydantic schemas for reporting endpoints.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .credit import UtcDateTime


class AggregateBucketResponse(BaseModel):
     key: Optional[str] = None
     count: int
     total_amount: Decimal

     model_config = ConfigDict(from_attributes=True)


class AggregateResponse(BaseModel):
     """Transactions counted and summed per group."""
     group_by: str
     is_time_series: bool
     buckets: List[AggregateBucketResponse]
     total_count: int
     total_amount: Decimal
     date_from: Optional[UtcDateTime] = None
     date_to: Optional[UtcDateTime] = None

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "group_by": "type",
                    "is_time_series": False,
                    "buckets": [
                         {"key": "ISSUE", "count": 2, "total_amount": "150.00"},
                         {"key": "REDEEM", "count": 1, "total_amount": "-60.00"}
                    ],
                    "total_count": 3,
                    "total_amount": "90.00",
                    "date_from": None,
                    "date_to": None
               }
          }
     )


class CreditStatsResponse(BaseModel):
     """Dashboard counters."""
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
     issued_trend: Optional[float] = None

     model_config = ConfigDict(from_attributes=True)


class CreditVerificationResponse(BaseModel):
     """Result of checking one credit's ledger against its balance."""
     credit_id: int
     ok: bool
     message: str
