# utils/metrics.py
"""
Operation metrics for the ledger engine.

Collectors are plain objects handed to the engine and sweeper; nothing here
is module-level state, so tests can pass their own instance and inspect it.
"""
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

logger = logging.getLogger(__name__)

# Minimum seconds between two slow-operation warnings for the same operation
SLOW_LOG_INTERVAL_SECONDS = 60 * 60


@dataclass
class OperationStats:
     count: int = 0
     failures: int = 0
     total_ms: float = 0.0
     max_ms: float = 0.0
     slow_count: int = 0
     last_slow_logged: float = 0.0

     @property
     def avg_ms(self) -> float:
          return self.total_ms / self.count if self.count else 0.0


class NullMetrics:
     """Collector that records nothing."""

     def record(self, operation: str, duration_ms: float, ok: bool) -> None:
          return None

     @contextmanager
     def timed(self, operation: str) -> Iterator[None]:
          yield


class MetricsCollector(NullMetrics):
     """
     In-memory per-operation counters with throttled slow-operation warnings.

     Args:
          slow_threshold_ms: Operations at or above this duration count as slow
     """

     def __init__(self, slow_threshold_ms: float = 1000):
          self.slow_threshold_ms = slow_threshold_ms
          self._stats: Dict[str, OperationStats] = {}
          self._lock = threading.Lock()

     def record(self, operation: str, duration_ms: float, ok: bool) -> None:
          with self._lock:
               stats = self._stats.setdefault(operation, OperationStats())
               stats.count += 1
               stats.total_ms += duration_ms
               stats.max_ms = max(stats.max_ms, duration_ms)
               if not ok:
                    stats.failures += 1
               if duration_ms < self.slow_threshold_ms:
                    return
               stats.slow_count += 1
               now = time.monotonic()
               if stats.slow_count > 1 and now - stats.last_slow_logged < SLOW_LOG_INTERVAL_SECONDS:
                    return
               stats.last_slow_logged = now
               slow_count, avg_ms = stats.slow_count, stats.avg_ms

          logger.warning(
               "Slow ledger operation %s: %.0fms (%d slow occurrences, avg %.0fms)",
               operation, duration_ms, slow_count, avg_ms,
          )

     @contextmanager
     def timed(self, operation: str) -> Iterator[None]:
          start = time.perf_counter()
          ok = False
          try:
               yield
               ok = True
          finally:
               self.record(operation, (time.perf_counter() - start) * 1000, ok)

     def snapshot(self) -> Dict[str, OperationStats]:
          """Copy of the current counters."""
          with self._lock:
               return {name: OperationStats(**vars(stats)) for name, stats in self._stats.items()}
