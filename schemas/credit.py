# schemas/credit.py
"""
Pydantic schemas for Credit API request/response validation.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from utils.timeutils import serialize_utc

# Naive UTC datetimes from the database are rendered with an explicit offset
UtcDateTime = Annotated[datetime, PlainSerializer(serialize_utc, return_type=str)]


class CreditStatusEnum(str, Enum):
     """Credit lifecycle status options."""
     ACTIVE = "ACTIVE"
     USED = "USED"
     EXPIRED = "EXPIRED"
     CANCELLED = "CANCELLED"


class CreditIssueRequest(BaseModel):
     """Schema for issuing a new credit."""
     customer_id: Optional[str] = Field(None, max_length=64, description="Customer the credit belongs to")
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Credit amount")
     currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO 4217 code (default from settings)")
     expiration_date: Optional[datetime] = Field(None, description="Expiration time; omit for a credit that never expires")
     note: Optional[str] = Field(None, max_length=1000)
     location_id: Optional[str] = Field(None, max_length=64)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "customer_id": "cust-1001",
                    "amount": 100.00,
                    "currency": "USD",
                    "expiration_date": "2027-12-31T23:59:59Z",
                    "note": "Refund for order #1042",
                    "location_id": "store-01"
               }
          }
     )


class CreditRedeemRequest(BaseModel):
     """Schema for redeeming part or all of a credit."""
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount to apply")
     order_id: Optional[str] = Field(None, max_length=64)
     order_number: Optional[str] = Field(None, max_length=64)
     location_id: Optional[str] = Field(None, max_length=64)
     note: Optional[str] = Field(None, max_length=1000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "amount": 60.00,
                    "order_id": "gid-5001",
                    "order_number": "#1051",
                    "location_id": "store-01"
               }
          }
     )


class CreditRedeemByCodeRequest(CreditRedeemRequest):
     """Schema for redeeming a credit by its code."""
     code: str = Field(..., min_length=1, max_length=32, description="Redemption code")


class CreditAdjustRequest(BaseModel):
     """Schema for a manual balance adjustment (positive or negative)."""
     amount: Decimal = Field(..., max_digits=12, decimal_places=2, description="Signed adjustment")
     reason: str = Field(..., min_length=1, max_length=1000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "amount": -10.00,
                    "reason": "Partial refund reversed"
               }
          }
     )


class CreditCancelRequest(BaseModel):
     """Schema for cancelling a credit."""
     reason: str = Field(..., min_length=1, max_length=1000)


class CreditExtendRequest(BaseModel):
     """Schema for moving a credit's expiration date later."""
     new_expiration_date: datetime = Field(..., description="New expiration time (must be later than the current one)")
     reason: str = Field(..., min_length=1, max_length=1000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "new_expiration_date": "2028-06-30T23:59:59Z",
                    "reason": "Goodwill extension"
               }
          }
     )


class CreditResponse(BaseModel):
     """Schema for credit response."""
     id: int
     code: str
     customer_id: Optional[str] = None
     original_amount: Decimal
     balance: Decimal
     currency: str
     status: CreditStatusEnum
     expiration_date: Optional[UtcDateTime] = None
     note: Optional[str] = None
     created_at: UtcDateTime
     updated_at: UtcDateTime

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": 1,
                    "code": "SC-7KQ2MX9P-B4TR-3F",
                    "customer_id": "cust-1001",
                    "original_amount": "100.00",
                    "balance": "40.00",
                    "currency": "USD",
                    "status": "ACTIVE",
                    "expiration_date": "2027-12-31T23:59:59+00:00",
                    "note": "Refund for order #1042",
                    "created_at": "2026-10-16T10:30:00+00:00",
                    "updated_at": "2026-10-16T11:02:00+00:00"
               }
          }
     )


class CreditListResponse(BaseModel):
     """Schema for paginated credit list response."""
     credits: List[CreditResponse]
     total: int
     page: int = 1
     limit: int = 20
     total_pages: int = 0


class ProcessExpiredResponse(BaseModel):
     """Result of one expiration sweep."""
     expired_count: int
     skipped_count: int
     failed_credit_ids: List[int] = []
     errors: List[str] = []
