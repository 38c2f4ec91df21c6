from .credits import router as credits_router
from .reports import router as reports_router
from .transactions import router as transactions_router

__all__ = ["credits_router", "reports_router", "transactions_router"]
