"""AdLens — Performance Counters.

Process-wide accumulators surfaced by the dashboard's performance monitor.
"""

import threading

from adlens.models.analytics_models import PerformanceSnapshot


class PerformanceCounters:
    """Monotonic query/cache counters. Only ``reset`` brings them back to zero."""

    def __init__(self):
        self._lock = threading.Lock()
        self.query_time_ms = 0.0
        self.records_processed = 0
        self.cache_hits = 0
        self.cache_misses = 0

    def record_query(self, duration_ms: float, record_count: int) -> None:
        with self._lock:
            self.query_time_ms += duration_ms
            self.records_processed += record_count

    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self.cache_misses += 1

    def reset(self) -> None:
        with self._lock:
            self.query_time_ms = 0.0
            self.records_processed = 0
            self.cache_hits = 0
            self.cache_misses = 0

    def snapshot(self) -> PerformanceSnapshot:
        """Copy the counters and derive hit rate and per-record query time."""
        with self._lock:
            lookups = self.cache_hits + self.cache_misses
            return PerformanceSnapshot(
                query_time_ms=round(self.query_time_ms, 3),
                records_processed=self.records_processed,
                cache_hits=self.cache_hits,
                cache_misses=self.cache_misses,
                cache_hit_rate=round(
                    (self.cache_hits / lookups * 100) if lookups > 0 else 0.0, 2
                ),
                average_query_time_ms=round(
                    (self.query_time_ms / self.records_processed)
                    if self.records_processed > 0
                    else 0.0,
                    4,
                ),
            )
