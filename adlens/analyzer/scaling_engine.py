"""AdLens — Scaling Engine.

Classifies ads by spend into scaled (>= $1000) and working ($100 to < $1000).

Two views exist and answer different questions:
- lifetime: spend summed over every supplied row of an ad; an ad that spent
  $600 in each of two weeks is scaled.
- weekly: spend judged inside each week; the same ad is working twice.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Sequence

from adlens.analyzer.ranking_engine import aggregate_by_ad, ad_status
from adlens.models.ad_models import AdRecord
from adlens.models.analytics_models import (
    SpendClassification,
    TopAd,
    WeeklyClassification,
)
from adlens.core.logging import get_logger

logger = get_logger("analyzer.scaling")

SCALED_THRESHOLD = 1000.0
WORKING_THRESHOLD = 100.0


def spend_tier(spend: float) -> str:
    """Return "scaled", "working" or "" for an amount of spend."""
    if spend >= SCALED_THRESHOLD:
        return "scaled"
    if spend >= WORKING_THRESHOLD:
        return "working"
    return ""


def _classify(spend_by_ad: Dict[str, float]) -> SpendClassification:
    scaled: List[str] = []
    working: List[str] = []
    for name, spend in spend_by_ad.items():
        tier = spend_tier(spend)
        if tier == "scaled":
            scaled.append(name)
        elif tier == "working":
            working.append(name)
    return SpendClassification(
        scaled_ads=len(scaled),
        working_ads=len(working),
        scaled_names=sorted(scaled),
        working_names=sorted(working),
    )


def classify_by_lifetime_spend(records: Sequence[AdRecord]) -> SpendClassification:
    """Classify each ad on its total spend across all supplied rows."""
    spend_by_ad: Dict[str, float] = defaultdict(float)
    for r in records:
        spend_by_ad[r.ad_name] += r.spend_usd
    return _classify(spend_by_ad)


def calculate_scaled_and_working_ads(
    records: Sequence[AdRecord],
) -> SpendClassification:
    """Scaled/working counts for the product stats (lifetime view)."""
    result = classify_by_lifetime_spend(records)
    logger.info(f"{result.scaled_ads} scaled ads, {result.working_ads} working ads")
    return result


def classify_by_weekly_spend(records: Sequence[AdRecord]) -> WeeklyClassification:
    """Classify each ad within each week on that week's spend only."""
    per_week: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for r in records:
        per_week[r.week_number][r.ad_name] += r.spend_usd
    return {week: _classify(spend) for week, spend in per_week.items()}


def scaled_ads_for_week(
    records: Sequence[AdRecord],
    week: str,
    now: datetime | None = None,
) -> List[TopAd]:
    """Ads that scaled within ``week``, highest spend first."""
    week_rows = [r for r in records if r.week_number == week]
    ads = [
        a for a in aggregate_by_ad(week_rows) if spend_tier(a.spend) == "scaled"
    ]
    ads.sort(key=lambda a: a.spend, reverse=True)
    for a in ads:
        a.status = ad_status(a, now)
    return ads

