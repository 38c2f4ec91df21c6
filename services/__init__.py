from .code_generator import CodeGenerator
from .credit_engine import CreditEngine, parse_amount
from .errors import LedgerError
from .events import CreditExpired, CreditExpiring, CreditIssued, CreditRedeemed, LedgerResult
from .expiration_sweeper import ExpirationSweeper, SweepResult
from .ledger_store import LedgerStore
from .notification_service import EmailNotificationHook, NotificationDispatcher, NotificationHook
from .reporting_service import ReportingService

__all__ = [
     "CodeGenerator",
     "CreditEngine",
     "parse_amount",
     "LedgerError",
     "CreditExpired",
     "CreditExpiring",
     "CreditIssued",
     "CreditRedeemed",
     "LedgerResult",
     "ExpirationSweeper",
     "SweepResult",
     "LedgerStore",
     "EmailNotificationHook",
     "NotificationDispatcher",
     "NotificationHook",
     "ReportingService",
]
