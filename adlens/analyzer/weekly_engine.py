"""AdLens — Weekly Rollup Engine."""

from collections import defaultdict
from typing import Dict, List, Sequence

from adlens.analyzer.scaling_engine import spend_tier
from adlens.analyzer.weeks import week_index
from adlens.models.ad_models import AdRecord
from adlens.models.analytics_models import WeeklyDataPoint
from adlens.core.logging import get_logger

logger = get_logger("analyzer.weekly")


class _WeekBucket:
    __slots__ = ("ads", "video", "image", "spend", "spend_by_ad")

    def __init__(self):
        self.ads: set = set()
        self.video: set = set()
        self.image: set = set()
        self.spend = 0.0
        self.spend_by_ad: Dict[str, float] = defaultdict(float)


def generate_weekly_data(records: Sequence[AdRecord]) -> List[WeeklyDataPoint]:
    """Roll rows up per week, oldest week first.

    Scaled/working counts use each ad's spend within that week, so one ad
    can be scaled in one week and working in the next.
    """
    buckets: Dict[str, _WeekBucket] = defaultdict(_WeekBucket)
    for r in records:
        b = buckets[r.week_number]
        b.ads.add(r.ad_name)
        b.spend += r.spend_usd
        b.spend_by_ad[r.ad_name] += r.spend_usd
        if r.creative_type == "VIDEO":
            b.video.add(r.ad_name)
        elif r.creative_type == "IMAGE":
            b.image.add(r.ad_name)

    points: List[WeeklyDataPoint] = []
    for week, b in buckets.items():
        tiers = [spend_tier(s) for s in b.spend_by_ad.values()]
        points.append(
            WeeklyDataPoint(
                week=week,
                ads_count=len(b.ads),
                spend=b.spend,
                video_ads=len(b.video),
                image_ads=len(b.image),
                scaled_ads=tiers.count("scaled"),
                working_ads=tiers.count("working"),
            )
        )

    points.sort(key=lambda p: week_index(p.week))
    logger.info(f"Generated weekly rollup for {len(points)} weeks")
    return points
