"""AdLens — Analytics Output Models."""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel

from adlens.models.ad_models import AdRecord


# ─────────────────────────────────────────────
# ENGINE RESULTS
# ─────────────────────────────────────────────


class ActiveAdsResult(BaseModel):
    """Ads with recent, sustained, meaningful spend."""

    count: int = 0
    total_spend: float = 0.0
    video_count: int = 0
    image_count: int = 0
    weeks: List[str] = []
    ads: List[AdRecord] = []


class SpendClassification(BaseModel):
    """Scaled (>= 1000) and working (100 to < 1000) ads for one spend view."""

    scaled_ads: int = 0
    working_ads: int = 0
    scaled_names: List[str] = []
    working_names: List[str] = []


class WeeklyDataPoint(BaseModel):
    """Rollup of one week. Scaled/working are judged on that week's spend only."""

    week: str
    ads_count: int = 0
    spend: float = 0.0
    video_ads: int = 0
    image_ads: int = 0
    scaled_ads: int = 0
    working_ads: int = 0


class TopAd(BaseModel):
    """An ad ranked by its summed spend."""

    name: str
    spend: float
    impressions: float = 0.0
    days_running: float = 0.0
    creative_type: str = ""
    creative_hub: bool = False
    week_number: str = ""
    first_ad_spend_date: Optional[str] = None
    last_ad_spend_date: Optional[str] = None
    status: str = "Inactive"  # "Active" | "Inactive"


class DesignerPerformance(BaseModel):
    """Totals for the ads carrying a designer's initials."""

    initials: str
    name: str = ""
    ads_count: int = 0
    total_spend: float = 0.0
    active_weeks: int = 0
    video_ads: int = 0
    image_ads: int = 0
    scaled_ads: int = 0


class DesignerWeek(BaseModel):
    """One week of a designer's output."""

    week: str
    total_ads: int = 0
    video_ads: int = 0
    image_ads: int = 0
    scaled_ads: int = 0
    total_spend: float = 0.0


class DesignerWeeklyPerformance(BaseModel):
    """Week-by-week breakdown for a single designer."""

    initials: str
    weeks: List[DesignerWeek] = []
    total_ads: int = 0
    total_spend: float = 0.0


class CreativeHubStats(BaseModel):
    """Stats for ads produced by the Creative Hub team."""

    total_spend: float = 0.0
    total_ads: int = 0
    scaled_ads: int = 0
    working_ads: int = 0
    video_ads: int = 0
    image_ads: int = 0


class CreativeHubWeek(BaseModel):
    """One week of Creative Hub output."""

    week: str
    total_ads: int = 0
    video_ads: int = 0
    image_ads: int = 0
    scaled_ads: int = 0
    total_spend: float = 0.0


# ─────────────────────────────────────────────
# FACADE OUTPUT
# ─────────────────────────────────────────────


class DatasetSource(str, Enum):
    """How complete the row set behind an analytics result is."""

    FULL = "full"  # Every row in the table
    SAMPLE = "sample"  # Recent window + highest-spend sample
    RECENT = "recent"  # Recent window only


class PerformanceSnapshot(BaseModel):
    """Point-in-time copy of the process-wide performance counters."""

    query_time_ms: float = 0.0
    records_processed: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_hit_rate: float = 0.0
    average_query_time_ms: float = 0.0


class ProductStats(BaseModel):
    """Headline numbers for a product dashboard."""

    total_spend: float = 0.0
    total_spend_change: float = 0.0
    total_ads: int = 0
    total_records: int = 0
    active_ads: int = 0
    active_spend: float = 0.0
    scaled_ads: int = 0
    working_ads: int = 0
    video_ads: int = 0
    image_ads: int = 0


class AnalyticsMetadata(BaseModel):
    """Provenance of a composed analytics result."""

    record_count: int = 0
    processing_time_ms: float = 0.0
    performance: PerformanceSnapshot = PerformanceSnapshot()
    weeks: List[str] = []
    timestamp: str = ""
    data_source: DatasetSource = DatasetSource.RECENT


class ProductAnalytics(BaseModel):
    """Everything a product dashboard renders, computed in one pass."""

    stats: ProductStats = ProductStats()
    weekly_data: List[WeeklyDataPoint] = []
    top_ads: List[TopAd] = []
    designers: List[DesignerPerformance] = []
    metadata: AnalyticsMetadata = AnalyticsMetadata()


WeeklyClassification = Dict[str, SpendClassification]
