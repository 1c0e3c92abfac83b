"""
Timing instrumentation for the dispatch loop.

The dispatcher wraps every batch and every handler call in measure(), so a
slow handler shows up in the report (and in the log, once it crosses its
threshold) without a profiler.

Usage:
    from hearthlog.core.monitoring import get_monitor

    monitor = get_monitor()
    with monitor.measure("handler.power"):
        handler.handle(line, state)

    monitor.report()  # {"handler.power": {"count": ..., "avg_ms": ...}}
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Batches are delivered every ~100ms by the watcher; anything close to
# that means the pipeline is falling behind the log.
DEFAULT_THRESHOLDS_MS = {
    "dispatch.batch": 50.0,
}


@dataclass
class _Stats:
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    def add(self, elapsed_ms: float):
        self.count += 1
        self.total_ms += elapsed_ms
        self.min_ms = min(self.min_ms, elapsed_ms)
        self.max_ms = max(self.max_ms, elapsed_ms)


class PerformanceMonitor:
    """
    Thread-safe timing registry keyed by operation name.

    Only running aggregates are kept per operation, so memory stays flat
    for a session of any length.
    """

    _instance: Optional['PerformanceMonitor'] = None
    _lock = threading.Lock()

    def __init__(self, thresholds: Optional[Dict[str, float]] = None):
        self.enabled = True
        self._stats: Dict[str, _Stats] = {}
        self._stats_lock = threading.Lock()
        self._thresholds: Dict[str, float] = dict(DEFAULT_THRESHOLDS_MS if thresholds is None else thresholds)

    @classmethod
    def get(cls) -> 'PerformanceMonitor':
        """Get the shared monitor."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = PerformanceMonitor()
        return cls._instance

    @contextmanager
    def measure(self, name: str):
        """Time the enclosed block under `name`."""
        if not self.enabled:
            yield
            return

        start_time = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000.0
            with self._stats_lock:
                self._stats.setdefault(name, _Stats()).add(elapsed_ms)

            threshold = self._thresholds.get(name)
            if threshold is not None and elapsed_ms > threshold:
                logger.warning(f"PERFORMANCE: '{name}' took {elapsed_ms:.2f}ms (threshold {threshold:.2f}ms)")

    def set_threshold(self, name: str, threshold_ms: float):
        self._thresholds[name] = threshold_ms
        logger.debug(f"Set performance threshold for '{name}': {threshold_ms}ms")

    def report(self) -> Dict[str, Dict[str, float]]:
        """
        Statistics for every measured operation.

        Returns:
            {name: {'count', 'total_ms', 'avg_ms', 'min_ms', 'max_ms'[, 'threshold_ms']}}
        """
        report = {}
        with self._stats_lock:
            for name, stats in self._stats.items():
                entry = {
                    'count': stats.count,
                    'total_ms': stats.total_ms,
                    'avg_ms': stats.total_ms / stats.count,
                    'min_ms': stats.min_ms,
                    'max_ms': stats.max_ms,
                }
                if name in self._thresholds:
                    entry['threshold_ms'] = self._thresholds[name]
                report[name] = entry
        return report

    def report_sorted(self, sort_by: str = 'total_ms', limit: Optional[int] = None) -> List[Tuple[str, Dict[str, float]]]:
        """Report entries sorted (descending) by one statistic."""
        items = sorted(self.report().items(), key=lambda item: item[1].get(sort_by, 0), reverse=True)
        return items[:limit] if limit else items

    def clear(self):
        with self._stats_lock:
            self._stats.clear()
        logger.debug("Performance metrics cleared")


def get_monitor() -> PerformanceMonitor:
    """Get the shared PerformanceMonitor instance."""
    return PerformanceMonitor.get()
