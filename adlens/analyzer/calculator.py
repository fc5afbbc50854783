"""AdLens — Ads Calculator.

Orchestrates the full analytics flow for one product:
  single-flight check → cache check → incremental load → engines → cache write

One instance is built at startup and shared by every request; see
``adlens.main``.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import List, Optional

from adlens.analyzer.active_engine import calculate_active_ads
from adlens.analyzer.creative_hub_engine import (
    calculate_creative_hub_designers,
    calculate_creative_hub_stats,
    generate_creative_hub_weekly_data,
)
from adlens.analyzer.designer_engine import (
    calculate_designer_performance,
    calculate_designer_weekly_performance,
)
from adlens.analyzer.ranking_engine import generate_top_ads
from adlens.analyzer.scaling_engine import (
    calculate_scaled_and_working_ads,
    scaled_ads_for_week,
)
from adlens.analyzer.trend_engine import calculate_spend_change
from adlens.analyzer.weekly_engine import generate_weekly_data
from adlens.analyzer.weeks import sort_weeks
from adlens.config import settings
from adlens.connectors.ads_store import AdsStore, AdsStoreError
from adlens.core.cache import CacheMetadata, Generation, TieredCache, make_key
from adlens.core.performance import PerformanceCounters
from adlens.core.single_flight import SingleFlight
from adlens.loader.incremental import IncrementalLoader
from adlens.models.ad_models import Designer, Product
from adlens.models.analytics_models import (
    ActiveAdsResult,
    AnalyticsMetadata,
    CreativeHubStats,
    CreativeHubWeek,
    DesignerPerformance,
    DesignerWeeklyPerformance,
    PerformanceSnapshot,
    ProductAnalytics,
    ProductStats,
    TopAd,
    WeeklyDataPoint,
)
from adlens.core.logging import get_logger

logger = get_logger("analyzer.calculator")


class ProductNotFoundError(Exception):
    """Raised when no single product matches a requested name."""

    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f'Product "{product_name}" not found')


class AdsCalculator:
    """Cached analytics for per-product ads tables."""

    def __init__(
        self,
        store: AdsStore,
        cache: TieredCache | None = None,
        counters: PerformanceCounters | None = None,
        loader: IncrementalLoader | None = None,
        single_flight: SingleFlight | None = None,
    ):
        self.store = store
        if loader is not None:
            # One cache and one set of counters, shared with the loader
            if cache is not None and cache is not loader.cache:
                raise ValueError("cache must be the loader's cache")
            if counters is not None and counters is not loader.counters:
                raise ValueError("counters must be the loader's counters")
            cache, counters = loader.cache, loader.counters
        self.cache = cache if cache is not None else TieredCache()
        self.counters = counters if counters is not None else PerformanceCounters()
        self.loader = (
            loader
            if loader is not None
            else IncrementalLoader(store, self.cache, self.counters)
        )
        self.single_flight = (
            single_flight if single_flight is not None else SingleFlight()
        )

    # ── Product Lookup ──

    async def get_product_info(self, product_name: str) -> Product:
        """Resolve a product by case-insensitive name.

        An exact match wins over partial matches; several partial matches
        are ambiguous and treated as not found.
        """
        matches = await self.store.find_products(product_name)
        exact = [m for m in matches if m["name"].lower() == product_name.lower()]
        if exact:
            return Product.model_validate(exact[0])
        if len(matches) == 1:
            return Product.model_validate(matches[0])
        raise ProductNotFoundError(product_name)

    async def _get_designers(self, product_initials: Optional[str]) -> List[Designer]:
        if not product_initials:
            return []
        try:
            rows = await self.store.fetch_designers(product_initials)
        except AdsStoreError as e:
            logger.error(f"Designer lookup failed for {product_initials}: {e}")
            return []
        return [Designer.model_validate(r) for r in rows]

    async def _get_designer_stats(
        self, table_name: str, product_initials: Optional[str]
    ) -> List[DesignerPerformance]:
        designers = await self._get_designers(product_initials)
        if not designers:
            return []
        dataset = await self.loader.get_all_ads_data(
            table_name, weeks_back=settings.designer_recent_weeks
        )
        return calculate_designer_performance(dataset.records, designers)

    # ── Complete Analytics ──

    async def get_complete_product_analytics(
        self,
        table_name: str,
        product_name: str,
        product_initials: Optional[str] = None,
    ) -> ProductAnalytics:
        """Stats, weekly rollup, top ads and designers for one product.

        Concurrent calls for the same table and product share one computation.
        """
        key = make_key("analytics", table_name, product_name)
        generation = self.cache.generation(table_name)
        # Computations started before an invalidation are not joined afterwards
        flight_key = make_key("analytics", table_name, product_name, *generation)

        def compute():
            return self._compute_analytics(
                key, generation, table_name, product_name, product_initials
            )

        if self.single_flight.in_flight(flight_key):
            return await self.single_flight.do(flight_key, compute)

        entry = self.cache.lookup(key)
        if entry is not None:
            self.counters.record_cache_hit()
            logger.info(
                f"Serving cached analytics for {product_name}",
                extra={"cache_key": key, "product": product_name},
            )
            return entry.data
        self.counters.record_cache_miss()

        return await self.single_flight.do(flight_key, compute)

    async def _compute_analytics(
        self,
        key: str,
        generation: Generation,
        table_name: str,
        product_name: str,
        product_initials: Optional[str],
    ) -> ProductAnalytics:
        started = time.perf_counter()
        logger.info(
            f"Computing analytics for {product_name}",
            extra={"table": table_name, "product": product_name},
        )

        dataset, recent, designer_stats = await asyncio.gather(
            self.loader.get_all_ads_data(table_name),
            self.loader.get_recent_ads_data(table_name, settings.active_recent_weeks),
            self._get_designer_stats(table_name, product_initials),
        )
        records = dataset.records

        active = calculate_active_ads(recent)
        classification = calculate_scaled_and_working_ads(records)
        spend_change = calculate_spend_change(records)
        weekly_data = generate_weekly_data(records)
        top_ads = generate_top_ads(records)

        processing_ms = (time.perf_counter() - started) * 1000
        analytics = ProductAnalytics(
            stats=ProductStats(
                total_spend=sum(r.spend_usd for r in records),
                total_spend_change=spend_change,
                total_ads=len({r.ad_name for r in records}),
                total_records=len(records),
                active_ads=active.count,
                active_spend=active.total_spend,
                scaled_ads=classification.scaled_ads,
                working_ads=classification.working_ads,
                video_ads=active.video_count,
                image_ads=active.image_count,
            ),
            weekly_data=weekly_data,
            top_ads=top_ads,
            designers=designer_stats,
            metadata=AnalyticsMetadata(
                record_count=len(records),
                processing_time_ms=round(processing_ms, 1),
                performance=self.counters.snapshot(),
                weeks=sort_weeks({r.week_number for r in records}),
                timestamp=datetime.now(timezone.utc).isoformat(),
                data_source=dataset.source,
            ),
        )

        self.cache.put(
            key,
            analytics,
            CacheMetadata(
                query_time_ms=round(processing_ms, 3),
                record_count=len(records),
                type="analytics",
            ),
            generation=generation,
        )
        self.cache.sweep()
        logger.info(
            f"Analytics ready for {product_name} ({dataset.source.value} data)",
            extra={
                "product": product_name,
                "duration_ms": round(processing_ms, 1),
                "record_count": len(records),
            },
        )
        return analytics

    # ── Projections ──

    async def get_product_stats(
        self, table_name: str, product_name: str, product_initials: Optional[str] = None
    ) -> ProductStats:
        analytics = await self.get_complete_product_analytics(
            table_name, product_name, product_initials
        )
        return analytics.stats

    async def get_product_weekly_data(
        self, table_name: str, product_name: str, product_initials: Optional[str] = None
    ) -> List[WeeklyDataPoint]:
        analytics = await self.get_complete_product_analytics(
            table_name, product_name, product_initials
        )
        return analytics.weekly_data

    async def get_product_top_ads(
        self, table_name: str, product_name: str, product_initials: Optional[str] = None
    ) -> List[TopAd]:
        analytics = await self.get_complete_product_analytics(
            table_name, product_name, product_initials
        )
        return analytics.top_ads

    async def get_product_designers(
        self, table_name: str, product_name: str, product_initials: Optional[str] = None
    ) -> List[DesignerPerformance]:
        analytics = await self.get_complete_product_analytics(
            table_name, product_name, product_initials
        )
        return analytics.designers

    # ── Focused Views ──

    async def calculate_active_ads(
        self, table_name: str, product_name: str
    ) -> ActiveAdsResult:
        recent = await self.loader.get_recent_ads_data(
            table_name, settings.active_recent_weeks
        )
        logger.info(f"Active ads for {product_name}", extra={"product": product_name})
        return calculate_active_ads(recent)

    async def get_designer_weekly_performance(
        self, table_name: str, initials: str
    ) -> DesignerWeeklyPerformance:
        dataset = await self.loader.get_all_ads_data(
            table_name, weeks_back=settings.designer_recent_weeks
        )
        return calculate_designer_weekly_performance(dataset.records, initials)

    async def get_week_scaled_ads(self, table_name: str, week: str) -> List[TopAd]:
        dataset = await self.loader.get_all_ads_data(table_name)
        return scaled_ads_for_week(dataset.records, week)

    async def get_creative_hub_stats(self, table_name: str) -> CreativeHubStats:
        dataset = await self.loader.get_all_ads_data(table_name)
        return calculate_creative_hub_stats(dataset.records)

    async def get_creative_hub_weekly_data(
        self, table_name: str
    ) -> List[CreativeHubWeek]:
        dataset = await self.loader.get_all_ads_data(table_name)
        return generate_creative_hub_weekly_data(dataset.records)

    async def get_creative_hub_designers(
        self, table_name: str
    ) -> List[DesignerPerformance]:
        """Hub team performance; the team is the designers registered under
        ``settings.creative_hub_designers_product``."""
        dataset, designers = await asyncio.gather(
            self.loader.get_all_ads_data(table_name),
            self._get_designers(settings.creative_hub_designers_product),
        )
        return calculate_creative_hub_designers(dataset.records, designers)

    # ── Administration ──

    def clear_all_caches(self) -> None:
        """Drop cached data and in-flight markers, and reset the counters."""
        self.cache.clear()
        self.single_flight.clear()
        self.counters.reset()
        logger.info("All caches cleared")

    def invalidate_product(self, table_name: str) -> int:
        """Drop every cache entry for one ads table, e.g. after an upload."""
        return self.cache.invalidate_table(table_name)

    def get_performance_metrics(self) -> PerformanceSnapshot:
        return self.counters.snapshot()

    def reset_performance_metrics(self) -> None:
        self.counters.reset()
