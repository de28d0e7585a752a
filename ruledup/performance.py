"""Timing metrics for detection calls and individual strategies.

Each ``DuplicateDetector`` owns one ``PerformanceMetrics`` instance; there
are no module-level singletons.
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List

from ruledup.utils.logger import log_info

_MAX_SAMPLES = 100


class PerformanceMetrics:
    """Track durations per named operation (last 100 samples each)."""

    def __init__(self):
        self.metrics: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    @contextmanager
    def time_operation(self, operation: str) -> Iterator[None]:
        """Time the enclosed block and record it under ``operation``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(operation, time.perf_counter() - start)

    def record(self, operation: str, duration: float) -> None:
        with self._lock:
            samples = self.metrics.setdefault(operation, [])
            samples.append(duration)
            # Keep only last 100 measurements
            if len(samples) > _MAX_SAMPLES:
                del samples[:-_MAX_SAMPLES]

    def get_operation_stats(self, operation: str) -> Dict[str, float]:
        """Get statistics for a specific operation."""
        with self._lock:
            durations = list(self.metrics.get(operation, ()))
        if not durations:
            return {}

        return {
            "count": len(durations),
            "avg_ms": round(sum(durations) * 1000 / len(durations), 2),
            "min_ms": round(min(durations) * 1000, 2),
            "max_ms": round(max(durations) * 1000, 2),
            "total_ms": round(sum(durations) * 1000, 2),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        """Get statistics for all operations."""
        with self._lock:
            operations = list(self.metrics)
        return {op: self.get_operation_stats(op) for op in operations}

    def reset(self) -> None:
        with self._lock:
            self.metrics.clear()

    def log_performance_summary(self) -> None:
        """Log a performance summary."""
        stats = self.get_all_stats()
        if not stats:
            return

        log_info("Performance metrics summary")
        for operation, op_stats in stats.items():
            if op_stats:
                log_info(
                    f"  {operation}: {op_stats['count']} calls, "
                    f"avg {op_stats['avg_ms']}ms, "
                    f"max {op_stats['max_ms']}ms"
                )
