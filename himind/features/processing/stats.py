"""
Process-local processing counters.

Advisory only: job rows in the store are the source of truth for job state.
Counters reset whenever the collector is recreated (e.g. on restart).
"""

import threading
import time
from typing import Callable, Optional


class ProcessingStatsCollector:
    """Completed/failed totals and cumulative processing time since start."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self.started_at = self._clock()
        self.completed = 0
        self.failed = 0
        self.total_processing_ms = 0

    def record_completed(self, processing_ms: int) -> None:
        with self._lock:
            self.completed += 1
            self.total_processing_ms += processing_ms

    def record_failed(self) -> None:
        with self._lock:
            self.failed += 1

    @property
    def avg_processing_time_ms(self) -> float:
        with self._lock:
            if not self.completed:
                return 0.0
            return self.total_processing_ms / self.completed

    @property
    def success_rate(self) -> float:
        """Share of finished jobs that completed; 1.0 before any finished."""
        with self._lock:
            finished = self.completed + self.failed
            return self.completed / finished if finished else 1.0

    @property
    def throughput_per_hour(self) -> float:
        """Completed jobs per wall-clock hour since the collector started."""
        hours = (self._clock() - self.started_at) / 3600
        with self._lock:
            if hours <= 0:
                return 0.0
            return self.completed / hours
