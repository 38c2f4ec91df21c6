# services/errors.py
"""
Ledger error taxonomy.

Every error carries a stable machine-readable ``code`` so callers (the HTTP
routers, jobs) can render a specific message without parsing text.
Validation errors are raised before anything is written. Only
ConcurrentModificationError is worth retrying.
"""
from typing import Optional


class LedgerError(Exception):
     """Base class for all ledger errors."""
     code = "ledger_error"

     def __init__(self, message: str, credit_id: Optional[int] = None):
          super().__init__(message)
          self.message = message
          self.credit_id = credit_id


class InvalidAmountError(LedgerError):
     code = "invalid_amount"


class InvalidCurrencyError(LedgerError):
     code = "invalid_currency"


class InvalidExpirationDateError(LedgerError):
     code = "invalid_expiration_date"


class InsufficientBalanceError(LedgerError):
     code = "insufficient_balance"


class CreditNotActiveError(LedgerError):
     code = "credit_not_active"


class AlreadyTerminalError(CreditNotActiveError):
     code = "already_terminal"


class AdjustmentOutOfRangeError(LedgerError):
     code = "adjustment_out_of_range"


class ExpirationNotDueError(LedgerError):
     code = "expiration_not_due"


class CreditNotFoundError(LedgerError):
     code = "credit_not_found"


class TransactionNotFoundError(LedgerError):
     code = "transaction_not_found"


class ConcurrentModificationError(LedgerError):
     code = "concurrent_modification"


class CodeCollisionError(LedgerError):
     code = "code_collision"


class CodeGenerationExhaustedError(LedgerError):
     code = "code_generation_exhausted"
