# services/code_generator.py
"""
Credit code generation.

Format: PREFIX-RRRRRRRR-TTTT-CC
- RRRRRRRR: random characters from an alphabet without look-alikes (0/O, 1/I)
- TTTT:     millisecond clock rendered in the same alphabet
- CC:       first two hex digits of the MD5 of everything before it

Uniqueness is probabilistic; the unique constraint on credits.code is the
backstop and the engine retries issuance when it fires.
"""
import hashlib
import logging
import re
import secrets
import time
from typing import Callable, Optional

from .errors import CodeGenerationExhaustedError

logger = logging.getLogger(__name__)

CODE_CHARACTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_RANDOM_LENGTH = 8
CODE_TIME_LENGTH = 4
DEFAULT_PREFIX = "SC"
DEFAULT_MAX_ATTEMPTS = 5


def _checksum(base_code: str) -> str:
     return hashlib.md5(base_code.encode("utf-8")).hexdigest()[:2].upper()


def _time_part(now_ms: Optional[int] = None) -> str:
     """Render the low bits of the millisecond clock in CODE_CHARACTERS."""
     value = now_ms if now_ms is not None else time.time_ns() // 1_000_000
     base = len(CODE_CHARACTERS)
     chars = []
     for _ in range(CODE_TIME_LENGTH):
          value, index = divmod(value, base)
          chars.append(CODE_CHARACTERS[index])
     return "".join(reversed(chars))


def _random_part() -> str:
     return "".join(secrets.choice(CODE_CHARACTERS) for _ in range(CODE_RANDOM_LENGTH))


def build_code(prefix: str = DEFAULT_PREFIX, now_ms: Optional[int] = None) -> str:
     """Build one candidate code (not checked for uniqueness)."""
     base_code = f"{prefix}-{_random_part()}-{_time_part(now_ms)}"
     return f"{base_code}-{_checksum(base_code)}"


def normalize_code(code: str) -> str:
     """Upper-case and strip a code typed by a person."""
     return (code or "").strip().upper()


def validate_code(code: str, prefix: str = DEFAULT_PREFIX) -> bool:
     """Check the code format and its checksum."""
     pattern = (
          rf"^{re.escape(prefix)}-[{CODE_CHARACTERS}]{{{CODE_RANDOM_LENGTH}}}"
          rf"-[{CODE_CHARACTERS}]{{{CODE_TIME_LENGTH}}}-[0-9A-F]{{2}}$"
     )
     if not re.match(pattern, code or ""):
          return False
     base_code, provided = code.rsplit("-", 1)
     return provided == _checksum(base_code)


class CodeGenerator:
     """
     Produces codes that do not exist in the ledger at return time.

     Safe to share between threads: it holds no mutable state.
     """

     def __init__(self, prefix: str = DEFAULT_PREFIX, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
          if max_attempts < 1:
               raise ValueError("max_attempts must be at least 1")
          self.prefix = normalize_code(prefix)
          if not self.prefix:
               raise ValueError("prefix must not be empty")
          self.max_attempts = max_attempts

     def generate(self, exists: Callable[[str], bool]) -> str:
          """
          Generate a unique code.

          Args:
               exists: Lookup returning True when a code is already taken

          Returns:
               A code not reported by ``exists``

          Raises:
               CodeGenerationExhaustedError: if every attempt collided
          """
          for attempt in range(1, self.max_attempts + 1):
               code = build_code(self.prefix)
               if not exists(code):
                    return code
               logger.warning("Credit code collision on attempt %d/%d", attempt, self.max_attempts)

          raise CodeGenerationExhaustedError(
               f"Could not generate a unique credit code after {self.max_attempts} attempts"
          )

     def validate(self, code: str) -> bool:
          return validate_code(code, self.prefix)
