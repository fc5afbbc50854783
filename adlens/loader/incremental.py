"""AdLens — Incremental Ads Loader.

Builds the best available in-memory row set for an ads table:

  recent window (fast, short TTL)
    → full table when it is small enough (long TTL)
    → recent window + highest-spend sample when it is not

Query failures never escape the loader. A failed primitive fetch yields an
empty list that is not cached, and the loader falls back to the recent
window, so dashboards get partial numbers instead of errors.
"""

import time
from datetime import datetime
from typing import Callable, Dict, List, Sequence, Tuple

from pydantic import BaseModel

from adlens.analyzer.weeks import window_start_week
from adlens.config import settings
from adlens.connectors.ads_store import AdsStore, AdsStoreError
from adlens.core.cache import CacheMetadata, Generation, TieredCache, make_key
from adlens.core.performance import PerformanceCounters
from adlens.core.single_flight import SingleFlight
from adlens.models.ad_models import AdRecord
from adlens.models.analytics_models import DatasetSource
from adlens.core.logging import get_logger

logger = get_logger("loader.incremental")


class AdsDataset(BaseModel):
    """Rows for one table and how complete they are."""

    records: List[AdRecord] = []
    source: DatasetSource = DatasetSource.RECENT


def merge_records(
    primary: Sequence[AdRecord], secondary: Sequence[AdRecord]
) -> List[AdRecord]:
    """Union of two row sets, one row per (ad_name, week_number).

    On collision the row from ``primary`` is kept.
    """
    merged: Dict[Tuple[str, str], AdRecord] = {}
    for r in primary:
        merged.setdefault((r.ad_name, r.week_number), r)
    for r in secondary:
        merged.setdefault((r.ad_name, r.week_number), r)
    return list(merged.values())


class BoundedSampleStrategy:
    """Stand-in for a full load on large tables.

    Above ``threshold`` rows, only the ``sample_size`` highest-spend rows are
    loaded and merged with the recent window. Historical ads outside both
    are invisible to the aggregations.
    """

    def __init__(self, threshold: int | None = None, sample_size: int | None = None):
        self.threshold = (
            settings.full_dataset_threshold if threshold is None else threshold
        )
        self.sample_size = settings.sample_size if sample_size is None else sample_size

    def applies(self, row_count: int) -> bool:
        return row_count > self.threshold

    def merge(
        self, recent: Sequence[AdRecord], sample: Sequence[AdRecord]
    ) -> List[AdRecord]:
        return merge_records(recent, sample)


class IncrementalLoader:
    """Cached, tiered access to an ads table."""

    def __init__(
        self,
        store: AdsStore,
        cache: TieredCache,
        counters: PerformanceCounters,
        strategy: BoundedSampleStrategy | None = None,
        page_size: int | None = None,
        now: Callable[[], datetime] = datetime.now,
        single_flight: SingleFlight | None = None,
    ):
        self.store = store
        self.cache = cache
        self.counters = counters
        self.strategy = strategy if strategy is not None else BoundedSampleStrategy()
        self.page_size = settings.page_size if page_size is None else page_size
        self.single_flight = single_flight if single_flight is not None else SingleFlight()
        self._now = now

    # ── Cache Access ──

    def _cached(self, key: str, long_ttl: bool):
        entry = self.cache.lookup(key, long_ttl=long_ttl)
        if entry is None:
            self.counters.record_cache_miss()
            return None
        self.counters.record_cache_hit()
        return entry.data

    def _store(
        self,
        key: str,
        records: List[AdRecord],
        kind: str,
        started: float,
        generation: Generation,
        count_query: bool = True,
    ):
        duration_ms = (time.perf_counter() - started) * 1000
        if count_query:
            self.counters.record_query(duration_ms, len(records))
        self.cache.put(
            key,
            records,
            CacheMetadata(
                query_time_ms=round(duration_ms, 3),
                record_count=len(records),
                type=kind,
            ),
            generation=generation,
        )
        logger.info(
            f"Loaded {len(records)} {kind} rows",
            extra={
                "cache_key": key,
                "duration_ms": round(duration_ms, 1),
                "record_count": len(records),
            },
        )

    # ── Primitive Fetchers ──

    async def get_recent_ads_data(
        self, table_name: str, weeks_back: int | None = None
    ) -> List[AdRecord]:
        """Rows from the last ``weeks_back`` weeks (short TTL)."""
        weeks_back = settings.default_recent_weeks if weeks_back is None else weeks_back
        key = make_key("recent", table_name, weeks_back)
        cached = self._cached(key, long_ttl=False)
        if cached is not None:
            return cached

        min_week = window_start_week(weeks_back, self._now())
        generation = self.cache.generation(table_name)
        started = time.perf_counter()
        try:
            records = await self.store.fetch_recent(table_name, min_week)
        except AdsStoreError as e:
            logger.error(f"Recent fetch failed: {e}", extra={"table": table_name})
            return []
        self._store(key, records, "recent", started, generation)
        return records

    async def get_historical_ads_data(
        self, table_name: str, limit: int, offset: int = 0
    ) -> List[AdRecord]:
        """Up to ``limit`` rows from ``offset``, fetched page by page (long TTL)."""
        key = make_key("historical", table_name, limit, offset)
        cached = self._cached(key, long_ttl=True)
        if cached is not None:
            return cached

        records: List[AdRecord] = []
        generation = self.cache.generation(table_name)
        started = time.perf_counter()
        try:
            while len(records) < limit:
                size = min(self.page_size, limit - len(records))
                page = await self.store.fetch_page(
                    table_name, size, offset + len(records)
                )
                records.extend(page)
                if len(page) < size:
                    break
        except AdsStoreError as e:
            logger.error(
                f"Historical fetch failed after {len(records)} rows: {e}",
                extra={"table": table_name},
            )
            return []
        self._store(key, records, "historical", started, generation)
        return records

    async def get_top_spend_sample(
        self, table_name: str, sample_size: int
    ) -> List[AdRecord]:
        """The ``sample_size`` highest-spend rows (long TTL)."""
        key = make_key("historical", table_name, "sample", sample_size)
        cached = self._cached(key, long_ttl=True)
        if cached is not None:
            return cached

        generation = self.cache.generation(table_name)
        started = time.perf_counter()
        try:
            records = await self.store.fetch_top_by_spend(table_name, sample_size)
        except AdsStoreError as e:
            logger.error(f"Sample fetch failed: {e}", extra={"table": table_name})
            return []
        self._store(key, records, "historical", started, generation)
        return records

    async def count_rows(self, table_name: str) -> int:
        """Row count of the table (long TTL); 0 when the count query fails."""
        key = make_key("count", table_name)
        cached = self._cached(key, long_ttl=True)
        if cached is not None:
            return cached

        generation = self.cache.generation(table_name)
        started = time.perf_counter()
        try:
            total = await self.store.count(table_name)
        except AdsStoreError as e:
            logger.error(f"Count failed: {e}", extra={"table": table_name})
            return 0
        duration_ms = (time.perf_counter() - started) * 1000
        self.counters.record_query(duration_ms, 0)
        self.cache.put(
            key,
            total,
            CacheMetadata(query_time_ms=round(duration_ms, 3), type="count"),
            generation=generation,
        )
        return total

    # ── Tiered Loading ──

    async def _load_beyond_window(
        self, table_name: str
    ) -> Tuple[List[AdRecord], DatasetSource]:
        """The full table, or the top-spend sample for large tables.

        Returns ``([], RECENT)`` when neither can be loaded.
        """
        generation = self.cache.generation(table_name)
        total = await self.count_rows(table_name)
        if total == 0:
            return [], DatasetSource.RECENT

        if not self.strategy.applies(total):
            started = time.perf_counter()
            records = await self.get_historical_ads_data(table_name, total)
            if not records:
                logger.warning(
                    "Full fetch returned nothing, serving recent window",
                    extra={"table": table_name},
                )
                return [], DatasetSource.RECENT
            # The page fetch already counted these rows
            self._store(
                make_key("full", table_name),
                records,
                "full",
                started,
                generation,
                count_query=False,
            )
            return records, DatasetSource.FULL

        sample = await self.get_top_spend_sample(table_name, self.strategy.sample_size)
        if not sample:
            return [], DatasetSource.RECENT
        logger.info(
            f"{total} rows exceed {self.strategy.threshold}; sampling "
            f"{len(sample)} top-spend rows",
            extra={"table": table_name, "record_count": len(sample)},
        )
        return sample, DatasetSource.SAMPLE

    async def get_all_ads_data(
        self,
        table_name: str,
        incremental_load: bool = True,
        weeks_back: int | None = None,
    ) -> AdsDataset:
        """Best available row set for the table.

        Concurrent callers for the same table share one count and one
        full or sample fetch.
        """
        recent = await self.get_recent_ads_data(table_name, weeks_back)
        if not incremental_load:
            return AdsDataset(records=recent, source=DatasetSource.RECENT)

        cached = self._cached(make_key("full", table_name), long_ttl=True)
        if cached is not None:
            return AdsDataset(records=cached, source=DatasetSource.FULL)

        # A load started before an invalidation is not joined afterwards
        records, source = await self.single_flight.do(
            make_key("extend", table_name, *self.cache.generation(table_name)),
            lambda: self._load_beyond_window(table_name),
        )
        if source == DatasetSource.FULL:
            return AdsDataset(records=records, source=source)
        if source == DatasetSource.SAMPLE:
            merged = self.strategy.merge(recent, records)
            logger.debug(
                f"Merged {len(recent)} recent + {len(records)} sampled rows "
                f"into {len(merged)}",
                extra={"table": table_name, "record_count": len(merged)},
            )
            return AdsDataset(records=merged, source=source)
        return AdsDataset(records=recent, source=DatasetSource.RECENT)
