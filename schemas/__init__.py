from .credit import (
     CreditIssueRequest,
     CreditRedeemRequest,
     CreditRedeemByCodeRequest,
     CreditAdjustRequest,
     CreditCancelRequest,
     CreditExtendRequest,
     CreditResponse,
     CreditListResponse,
     ProcessExpiredResponse,
)
from .transaction import (
     TransactionResponse,
     TransactionListResponse,
     CreditOperationResponse,
)
from .report import (
     AggregateResponse,
     CreditStatsResponse,
     CreditVerificationResponse,
)

__all__ = [
     "CreditIssueRequest",
     "CreditRedeemRequest",
     "CreditRedeemByCodeRequest",
     "CreditAdjustRequest",
     "CreditCancelRequest",
     "CreditExtendRequest",
     "CreditResponse",
     "CreditListResponse",
     "ProcessExpiredResponse",
     "TransactionResponse",
     "TransactionListResponse",
     "CreditOperationResponse",
     "AggregateResponse",
     "CreditStatsResponse",
     "CreditVerificationResponse",
]
