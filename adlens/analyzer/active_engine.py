"""AdLens — Active Ads Engine.

An ad is active when it ran in one of the latest weeks present in the data,
for more than a few days, with more than a token amount of spend.
"""

from typing import Dict, Sequence

from adlens.analyzer.weeks import sort_weeks
from adlens.models.ad_models import AdRecord
from adlens.models.analytics_models import ActiveAdsResult
from adlens.core.logging import get_logger

logger = get_logger("analyzer.active")

# Thresholds
ACTIVE_WEEKS = 3
MIN_DAYS_RUNNING = 3  # days_running must exceed this
MIN_SPEND = 1.0  # spend_usd must exceed this


def calculate_active_ads(
    records: Sequence[AdRecord],
    recent_weeks: int = ACTIVE_WEEKS,
    min_days_running: float = MIN_DAYS_RUNNING,
    min_spend: float = MIN_SPEND,
) -> ActiveAdsResult:
    """Detect active ads in a recent-window row set."""
    weeks = sort_weeks({r.week_number for r in records})[-recent_weeks:]
    week_set = set(weeks)

    # Keep the highest-spend row per ad
    unique: Dict[str, AdRecord] = {}
    for r in records:
        if r.week_number not in week_set:
            continue
        if r.days_running <= min_days_running or r.spend_usd <= min_spend:
            continue
        current = unique.get(r.ad_name)
        if current is None or current.spend_usd < r.spend_usd:
            unique[r.ad_name] = r

    ads = sorted(unique.values(), key=lambda a: a.spend_usd, reverse=True)
    result = ActiveAdsResult(
        count=len(ads),
        total_spend=sum(a.spend_usd for a in ads),
        video_count=sum(1 for a in ads if a.creative_type == "VIDEO"),
        image_count=sum(1 for a in ads if a.creative_type == "IMAGE"),
        weeks=weeks,
        ads=ads,
    )
    logger.info(
        f"{result.count} active ads in {', '.join(weeks) or 'no weeks'} "
        f"({result.video_count} video, {result.image_count} image)"
    )
    return result
