# routers/credits.py
"""
Credit API routes.

Issue, look up, redeem, adjust, cancel and extend store credits. All state
changes go through the lifecycle engine; the acting staff member comes from
the bearer token and is recorded on the ledger entry.
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from dependencies import LedgerServices, get_services, ledger_http_error, staff_id_from, verify_token
from models import CreditStatus
from schemas.credit import (
     CreditAdjustRequest,
     CreditCancelRequest,
     CreditExtendRequest,
     CreditIssueRequest,
     CreditListResponse,
     CreditRedeemByCodeRequest,
     CreditRedeemRequest,
     CreditResponse,
     CreditStatusEnum,
     ProcessExpiredResponse,
)
from schemas.report import CreditVerificationResponse
from schemas.transaction import CreditOperationResponse, TransactionResponse
from services.errors import LedgerError
from services.events import LedgerResult
from services.reporting_service import Page

router = APIRouter(prefix="/api/credits", tags=["credits"])

CreditSortField = Literal["created_at", "updated_at", "original_amount", "balance", "expiration_date"]


def _operation_response(result: LedgerResult) -> CreditOperationResponse:
     return CreditOperationResponse(
          credit=CreditResponse.model_validate(result.credit),
          transaction=TransactionResponse.model_validate(result.transaction),
     )


def _credit_list(page: Page) -> CreditListResponse:
     return CreditListResponse(
          credits=[CreditResponse.model_validate(credit) for credit in page.items],
          total=page.total,
          page=page.page,
          limit=page.limit,
          total_pages=page.total_pages,
     )


# ---------------------------------------------------------------------------
# Collection routes (declared before /{credit_id})
# ---------------------------------------------------------------------------

@router.post(
     "",
     response_model=CreditOperationResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Issue a credit",
)
def issue_credit(
     body: CreditIssueRequest,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.engine.issue(
               customer_id=body.customer_id,
               amount=body.amount,
               currency=body.currency,
               expiration_date=body.expiration_date,
               note=body.note,
               staff_id=staff_id_from(token),
               location_id=body.location_id,
          )
     except LedgerError as e:
          raise ledger_http_error(e)
     return _operation_response(result)


@router.get("", response_model=CreditListResponse, summary="List credits")
def list_credits(
     customer_id: Optional[str] = Query(None),
     status_filter: Optional[CreditStatusEnum] = Query(None, alias="status"),
     include_terminal: bool = Query(True, description="Include USED, EXPIRED and CANCELLED credits"),
     page: int = Query(1, ge=1),
     limit: int = Query(20, ge=1, le=100),
     sort_by: CreditSortField = Query("created_at"),
     sort_order: Literal["asc", "desc"] = Query("desc"),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     result = services.reporting.list_credits(
          customer_id=customer_id,
          status=CreditStatus(status_filter.value) if status_filter else None,
          include_terminal=include_terminal,
          page=page,
          limit=limit,
          sort_by=sort_by,
          sort_order=sort_order,
     )
     return _credit_list(result)


@router.get("/expiring", response_model=CreditListResponse, summary="Credits expiring soon")
def list_expiring_credits(
     days: int = Query(30, ge=1, le=365),
     page: int = Query(1, ge=1),
     limit: int = Query(20, ge=1, le=100),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     return _credit_list(services.reporting.expiring_credits(days=days, page=page, limit=limit))


@router.post("/process-expired", response_model=ProcessExpiredResponse, summary="Run the expiration sweep now")
def process_expired_credits(
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     result = services.sweeper.sweep_expired()
     return ProcessExpiredResponse(
          expired_count=result.expired_count,
          skipped_count=result.skipped_count,
          failed_credit_ids=[failure.credit_id for failure in result.failures],
          errors=[failure.message for failure in result.failures],
     )


@router.post("/redeem", response_model=CreditOperationResponse, summary="Redeem a credit by code")
def redeem_credit_by_code(
     body: CreditRedeemByCodeRequest,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.engine.redeem_by_code(
               body.code,
               body.amount,
               order_id=body.order_id,
               order_number=body.order_number,
               staff_id=staff_id_from(token),
               location_id=body.location_id,
               note=body.note,
          )
     except LedgerError as e:
          raise ledger_http_error(e)
     return _operation_response(result)


@router.get("/code/{code}", response_model=CreditResponse, summary="Look up a credit by code")
def get_credit_by_code(
     code: str,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          return services.engine.get_credit_by_code(code)
     except LedgerError as e:
          raise ledger_http_error(e)


# ---------------------------------------------------------------------------
# Single credit routes
# ---------------------------------------------------------------------------

@router.get("/{credit_id}", response_model=CreditResponse, summary="Get a credit")
def get_credit(
     credit_id: int,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          return services.engine.get_credit(credit_id)
     except LedgerError as e:
          raise ledger_http_error(e)


@router.get("/{credit_id}/verify", response_model=CreditVerificationResponse, summary="Verify a credit's ledger")
def verify_credit(
     credit_id: int,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          ok, message = services.reporting.verify_credit(credit_id)
     except LedgerError as e:
          raise ledger_http_error(e)
     return CreditVerificationResponse(credit_id=credit_id, ok=ok, message=message)


@router.get("/{credit_id}/balance-at", summary="Balance of a credit at a point in time")
def get_balance_at(
     credit_id: int,
     at: datetime = Query(..., description="Point in time (ISO 8601)"),
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          balance = services.reporting.balance_at(credit_id, at)
     except LedgerError as e:
          raise ledger_http_error(e)
     return {"credit_id": credit_id, "at": at.isoformat(), "balance": str(balance) if balance is not None else None}


@router.post("/{credit_id}/redeem", response_model=CreditOperationResponse, summary="Redeem a credit")
def redeem_credit(
     credit_id: int,
     body: CreditRedeemRequest,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.engine.redeem(
               credit_id,
               body.amount,
               order_id=body.order_id,
               order_number=body.order_number,
               staff_id=staff_id_from(token),
               location_id=body.location_id,
               note=body.note,
          )
     except LedgerError as e:
          raise ledger_http_error(e)
     return _operation_response(result)


@router.post("/{credit_id}/adjust", response_model=CreditOperationResponse, summary="Adjust a credit's balance")
def adjust_credit(
     credit_id: int,
     body: CreditAdjustRequest,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.engine.adjust(credit_id, body.amount, body.reason, staff_id=staff_id_from(token))
     except LedgerError as e:
          raise ledger_http_error(e)
     return _operation_response(result)


@router.post("/{credit_id}/cancel", response_model=CreditOperationResponse, summary="Cancel a credit")
def cancel_credit(
     credit_id: int,
     body: CreditCancelRequest,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.engine.cancel(credit_id, body.reason, staff_id=staff_id_from(token))
     except LedgerError as e:
          raise ledger_http_error(e)
     return _operation_response(result)


@router.post(
     "/{credit_id}/extend-expiration",
     response_model=CreditOperationResponse,
     summary="Extend a credit's expiration date",
)
def extend_credit_expiration(
     credit_id: int,
     body: CreditExtendRequest,
     services: LedgerServices = Depends(get_services),
     token: dict = Depends(verify_token),
):
     try:
          result = services.engine.extend_expiration(
               credit_id, body.new_expiration_date, body.reason, staff_id=staff_id_from(token)
          )
     except LedgerError as e:
          raise ledger_http_error(e)
     return _operation_response(result)
