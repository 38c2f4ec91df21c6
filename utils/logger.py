# utils/logger.py
import logging
import sys
from typing import Optional

from config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "ledger", level: Optional[str] = None) -> logging.Logger:
     """
     Configure the application logger and return it.

     Args:
          name: Logger name (default: ledger)
          level: Log level name; falls back to LOG_LEVEL from the environment

     Returns:
          Configured logging.Logger
     """
     log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)

     logger = logging.getLogger(name)
     logger.setLevel(log_level)

     # Drop handlers from a previous call so lines are not duplicated
     if logger.handlers:
          logger.handlers.clear()

     handler = logging.StreamHandler(sys.stdout)
     handler.setLevel(log_level)
     handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
     logger.addHandler(handler)

     # Module loggers (services.*, jobs.*) propagate to the root logger
     root_logger = logging.getLogger()
     if not root_logger.handlers:
          root_logger.addHandler(handler)
          root_logger.setLevel(log_level)

     return logger
