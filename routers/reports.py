# routers/reports.py
"""
Reporting API routes: aggregates and dashboard counters.
"""
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dependencies import LedgerServices, get_services, verify_token
from models import TransactionType
from schemas.report import AggregateResponse, CreditStatsResponse
from schemas.transaction import TransactionTypeEnum

router = APIRouter(prefix="/api/reports", tags=["reports"])

GroupBy = Literal["type", "day", "week", "month", "location", "staff", "currency"]


@router.get("/aggregate", response_model=AggregateResponse, summary="Aggregate transactions")
def aggregate_transactions(
     group_by: GroupBy = Query("type"),
     date_from: Optional[datetime] = Query(None),
     date_to: Optional[datetime] = Query(None),
     customer_id: Optional[str] = Query(None),
     credit_id: Optional[int] = Query(None),
     types: Optional[List[TransactionTypeEnum]] = Query(None, alias="type"),
     staff_id: Optional[str] = Query(None),
     location_id: Optional[str] = Query(None),
     currency: Optional[str] = Query(None, min_length=3, max_length=3),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     if date_from and date_to and date_from > date_to:
          raise HTTPException(status_code=400, detail="date_from must not be after date_to")
     try:
          report = services.reporting.aggregate(
               group_by=group_by,
               date_from=date_from,
               date_to=date_to,
               customer_id=customer_id,
               credit_id=credit_id,
               types=[TransactionType(t.value) for t in types] if types else None,
               staff_id=staff_id,
               location_id=location_id,
               currency=currency,
          )
     except ValueError as e:
          raise HTTPException(status_code=400, detail=str(e))
     return AggregateResponse.model_validate(report)


@router.get("/stats", response_model=CreditStatsResponse, summary="Credit statistics")
def get_credit_stats(
     period_days: int = Query(30, ge=1, le=365),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     return CreditStatsResponse.model_validate(services.reporting.credit_stats(period_days=period_days))
