"""Thread-safe timing counters for resolution, projection and provider calls."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

logger = logging.getLogger("galaxyai.performance")

SLOW_OPERATION_MS = 1000.0


@dataclass
class OperationStats:
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    failures: int = 0

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "failures": self.failures,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.average_ms, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
        }


class PerformanceMonitor:
    """Collects per-operation call counts and durations.

    One instance is created by the application and shared by the
    components that report into it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats: dict[str, OperationStats] = {}

    def record(self, operation: str, duration_ms: float, success: bool = True) -> None:
        with self._lock:
            stats = self._stats.get(operation)
            if stats is None:
                stats = OperationStats(min_ms=duration_ms, max_ms=duration_ms)
                self._stats[operation] = stats
            stats.count += 1
            stats.total_ms += duration_ms
            stats.min_ms = min(stats.min_ms, duration_ms)
            stats.max_ms = max(stats.max_ms, duration_ms)
            if not success:
                stats.failures += 1

        if duration_ms > SLOW_OPERATION_MS:
            logger.warning("Slow operation %s: %.1f ms", operation, duration_ms)

    @contextmanager
    def time_operation(self, operation: str) -> Iterator[None]:
        """Time the enclosed block; exceptions are counted as failures and re-raised."""
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            self.record(operation, (time.perf_counter() - start) * 1000.0, success)

    def get(self, operation: str) -> OperationStats:
        with self._lock:
            stats = self._stats.get(operation)
            return OperationStats(**vars(stats)) if stats else OperationStats()

    def statistics(self) -> dict[str, dict]:
        with self._lock:
            return {name: s.to_dict() for name, s in sorted(self._stats.items())}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
