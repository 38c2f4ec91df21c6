# config.py
"""
Environment configuration for the credit ledger.

Values are read from the process environment (a local .env file is loaded
first). Business rule toggles are grouped into LedgerSettings, which is
passed explicitly to the engine so tests can build their own.
"""
import os
from dataclasses import dataclass, field
from typing import Tuple
from urllib.parse import quote_plus

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
     value = os.getenv(name)
     if value is None:
          return default
     return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
     value = os.getenv(name)
     if value is None or value.strip() == "":
          return default
     return int(value)


def _env_int_list(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
     value = os.getenv(name)
     if not value:
          return default
     return tuple(int(part) for part in value.split(",") if part.strip())


def build_database_url() -> str:
     """
     Resolve the SQLAlchemy database URL.

     DATABASE_URL wins when set; otherwise the MS SQL Server URL is built
     from the DB_* variables.
     """
     url = os.getenv("DATABASE_URL")
     if url:
          return url

     safe_user = quote_plus(os.getenv("DB_USER") or "")
     safe_pass = quote_plus(os.getenv("DB_PASS") or "")
     server = os.getenv("DB_SERVER")
     port = os.getenv("DB_PORT", "1433")
     name = os.getenv("DB_NAME")
     return f"mssql+pymssql://{safe_user}:{safe_pass}@{server}:{port}/{name}"


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# API
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
CORS_ORIGINS = [origin for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin]

# E-mail (Brevo)
BREVO_API_KEY = os.getenv("BREVO_API_KEY")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", "Store Credit")
EMAIL_SENDER_ADDRESS = os.getenv("EMAIL_SENDER_ADDRESS", "noreply@example.com")

# Scheduler
SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", False)
EXPIRATION_SWEEP_CRON = os.getenv("EXPIRATION_SWEEP_CRON", "0 3 * * *")
EXPIRATION_REMINDER_CRON = os.getenv("EXPIRATION_REMINDER_CRON", "0 9 * * *")


@dataclass(frozen=True)
class LedgerSettings:
     """Business rule configuration for the lifecycle engine."""
     code_prefix: str = "SC"
     code_max_attempts: int = 5
     max_concurrency_retries: int = 3
     # Upward adjustments past original_amount are rejected unless enabled
     allow_adjust_above_original: bool = False
     default_currency: str = "USD"
     reminder_days: Tuple[int, ...] = field(default=(7, 1))
     slow_operation_ms: int = 1000

     @classmethod
     def from_env(cls) -> "LedgerSettings":
          return cls(
               code_prefix=os.getenv("CREDIT_CODE_PREFIX", "SC").strip().upper(),
               code_max_attempts=_env_int("CREDIT_CODE_MAX_ATTEMPTS", 5),
               max_concurrency_retries=_env_int("LEDGER_MAX_RETRIES", 3),
               allow_adjust_above_original=_env_bool("ALLOW_ADJUST_ABOVE_ORIGINAL", False),
               default_currency=os.getenv("DEFAULT_CURRENCY", "USD").upper(),
               reminder_days=_env_int_list("EXPIRATION_REMINDER_DAYS", (7, 1)),
               slow_operation_ms=_env_int("SLOW_OPERATION_MS", 1000),
          )
