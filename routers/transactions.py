# routers/transactions.py
"""
Transaction (ledger entry) API routes. Read-only: entries are only ever
written by the lifecycle engine.
"""
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dependencies import LedgerServices, get_services, ledger_http_error, verify_token
from models import TransactionType
from schemas.transaction import TransactionListResponse, TransactionResponse, TransactionTypeEnum
from services.errors import LedgerError
from services.reporting_service import Page

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def _transaction_list(page: Page) -> TransactionListResponse:
     return TransactionListResponse(
          transactions=[TransactionResponse.model_validate(entry) for entry in page.items],
          total=page.total,
          page=page.page,
          limit=page.limit,
          total_pages=page.total_pages,
     )


@router.get("", response_model=TransactionListResponse, summary="List transactions")
def list_transactions(
     credit_id: Optional[int] = Query(None),
     customer_id: Optional[str] = Query(None),
     types: Optional[List[TransactionTypeEnum]] = Query(None, alias="type"),
     staff_id: Optional[str] = Query(None),
     location_id: Optional[str] = Query(None),
     order_id: Optional[str] = Query(None),
     date_from: Optional[datetime] = Query(None),
     date_to: Optional[datetime] = Query(None),
     page: int = Query(1, ge=1),
     limit: int = Query(20, ge=1, le=100),
     sort_by: Literal["timestamp", "amount", "type"] = Query("timestamp"),
     sort_order: Literal["asc", "desc"] = Query("desc"),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     result = services.reporting.list_transactions(
          page=page,
          limit=limit,
          sort_by=sort_by,
          sort_order=sort_order,
          credit_id=credit_id,
          customer_id=customer_id,
          types=[TransactionType(t.value) for t in types] if types else None,
          staff_id=staff_id,
          location_id=location_id,
          order_id=order_id,
          date_from=date_from,
          date_to=date_to,
     )
     return _transaction_list(result)


@router.get("/audit", response_model=TransactionListResponse, summary="Audit log for a credit or customer")
def get_audit_log(
     entity_type: Literal["credit", "customer"] = Query(...),
     entity_id: str = Query(..., min_length=1),
     page: int = Query(1, ge=1),
     limit: int = Query(20, ge=1, le=100),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.reporting.get_audit_log(entity_type, entity_id, page=page, limit=limit)
     except ValueError as e:
          raise HTTPException(status_code=400, detail=str(e))
     return _transaction_list(result)


@router.get("/{transaction_id}", response_model=TransactionResponse, summary="Get a transaction")
def get_transaction(
     transaction_id: int,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          return services.reporting.get_transaction(transaction_id)
     except LedgerError as e:
          raise ledger_http_error(e)
