# schemas/transaction.py
"""
Pydantic schemas for ledger transactions.
"""
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .credit import CreditResponse, UtcDateTime


class TransactionTypeEnum(str, Enum):
     """Ledger entry types."""
     ISSUE = "ISSUE"
     REDEEM = "REDEEM"
     ADJUST = "ADJUST"
     CANCEL = "CANCEL"
     EXPIRE = "EXPIRE"
     EXTEND = "EXTEND"


class TransactionResponse(BaseModel):
     """Schema for one ledger entry."""
     id: int
     credit_id: int
     customer_id: Optional[str] = None
     type: TransactionTypeEnum
     amount: Decimal
     balance_after: Decimal
     staff_id: Optional[str] = None
     location_id: Optional[str] = None
     order_id: Optional[str] = None
     order_number: Optional[str] = None
     note: Optional[str] = None
     previous_expiration_date: Optional[UtcDateTime] = None
     new_expiration_date: Optional[UtcDateTime] = None
     timestamp: UtcDateTime

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": 12,
                    "credit_id": 1,
                    "customer_id": "cust-1001",
                    "type": "REDEEM",
                    "amount": "-60.00",
                    "balance_after": "40.00",
                    "staff_id": "7",
                    "location_id": "store-01",
                    "order_id": "gid-5001",
                    "order_number": "#1051",
                    "note": None,
                    "timestamp": "2026-10-16T11:02:00+00:00"
               }
          }
     )


class TransactionListResponse(BaseModel):
     """Schema for paginated transaction list response."""
     transactions: List[TransactionResponse]
     total: int
     page: int = 1
     limit: int = 20
     total_pages: int = 0


class CreditOperationResponse(BaseModel):
     """Credit state after a mutation, with the ledger entry it produced."""
     credit: CreditResponse
     transaction: TransactionResponse
