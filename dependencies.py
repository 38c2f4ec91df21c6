# dependencies.py
"""
FastAPI dependencies: staff authentication and ledger service wiring.

The services are built once per application (see main.create_app) and kept
on app.state, so tests can mount the routers on their own database.
"""
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import sessionmaker

from config import BREVO_API_KEY, JWT_ALGORITHM, JWT_SECRET, LedgerSettings
from services.credit_engine import CreditEngine
from services.errors import (
     AdjustmentOutOfRangeError,
     CodeCollisionError,
     CodeGenerationExhaustedError,
     ConcurrentModificationError,
     CreditNotActiveError,
     CreditNotFoundError,
     ExpirationNotDueError,
     InsufficientBalanceError,
     InvalidAmountError,
     InvalidCurrencyError,
     InvalidExpirationDateError,
     LedgerError,
     TransactionNotFoundError,
)
from services.expiration_sweeper import ExpirationSweeper
from services.ledger_store import LedgerStore
from services.notification_service import EmailNotificationHook, NotificationDispatcher, NotificationHook
from services.reporting_service import ReportingService
from utils.metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class LedgerServices:
     """Everything the HTTP layer and the scheduler need, built from one session factory."""
     settings: LedgerSettings
     store: LedgerStore
     engine: CreditEngine
     sweeper: ExpirationSweeper
     reporting: ReportingService
     metrics: MetricsCollector
     executor: Optional[Executor] = None

     def close(self) -> None:
          if self.executor is not None:
               self.executor.shutdown(wait=True)


def _email_recipient(customer_id: str) -> Optional[str]:
     # Customers are referenced by an opaque id; only ids that are addresses can be mailed
     return customer_id if "@" in customer_id else None


def build_services(
     session_factory: sessionmaker,
     settings: Optional[LedgerSettings] = None,
     hook: Optional[NotificationHook] = None,
     executor=None,
) -> LedgerServices:
     """
     Wire store, engine, sweeper and reporting together.

     Without an explicit hook, e-mail notifications are used when Brevo is
     configured and events are dropped otherwise.
     """
     settings = settings or LedgerSettings.from_env()
     store = LedgerStore(session_factory)
     if hook is None:
          if BREVO_API_KEY:
               hook = EmailNotificationHook(store, recipient_lookup=_email_recipient)
               executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="ledger-notify")
          else:
               hook = NotificationHook()
     dispatcher = NotificationDispatcher(hook, executor=executor)
     metrics = MetricsCollector(slow_threshold_ms=settings.slow_operation_ms)
     engine = CreditEngine(store, settings=settings, dispatcher=dispatcher, metrics=metrics)
     return LedgerServices(
          settings=settings,
          store=store,
          engine=engine,
          sweeper=ExpirationSweeper(engine, dispatcher=dispatcher),
          reporting=ReportingService(store, settings=settings),
          metrics=metrics,
          executor=executor,
     )


def get_services(request: Request) -> LedgerServices:
     return request.app.state.ledger


# Token Auth Dependency
def verify_token(request: Request) -> dict:
     auth = request.headers.get("Authorization")
     if not auth or not auth.startswith("Bearer "):
          raise HTTPException(status_code=401, detail="Missing token")
     token = auth.split(" ")[1]
     try:
          payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
          return payload
     except JWTError:
          raise HTTPException(status_code=403, detail="Invalid token")


def staff_id_from(token: dict) -> Optional[str]:
     """Staff identity recorded on ledger entries (the token's id claim)."""
     staff_id = token.get("id")
     return str(staff_id) if staff_id is not None else None


# Most specific classes first: AlreadyTerminalError is a CreditNotActiveError
_ERROR_STATUS = (
     (CreditNotFoundError, status.HTTP_404_NOT_FOUND),
     (TransactionNotFoundError, status.HTTP_404_NOT_FOUND),
     (InvalidAmountError, status.HTTP_400_BAD_REQUEST),
     (InvalidCurrencyError, status.HTTP_400_BAD_REQUEST),
     (InvalidExpirationDateError, status.HTTP_400_BAD_REQUEST),
     (AdjustmentOutOfRangeError, status.HTTP_400_BAD_REQUEST),
     (InsufficientBalanceError, status.HTTP_409_CONFLICT),
     (CreditNotActiveError, status.HTTP_409_CONFLICT),
     (ExpirationNotDueError, status.HTTP_409_CONFLICT),
     (ConcurrentModificationError, status.HTTP_409_CONFLICT),
     (CodeCollisionError, status.HTTP_503_SERVICE_UNAVAILABLE),
     (CodeGenerationExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def ledger_http_error(exc: LedgerError) -> HTTPException:
     """Translate a ledger error into the HTTP error returned to the client."""
     status_code = status.HTTP_400_BAD_REQUEST
     for error_class, code in _ERROR_STATUS:
          if isinstance(exc, error_class):
               status_code = code
               break
     return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})
