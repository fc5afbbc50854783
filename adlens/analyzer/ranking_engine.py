"""AdLens — Ranking Engine.

Aggregates week rows into one entry per ad and ranks ads by total spend.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from adlens.analyzer.weeks import week_index
from adlens.config import settings
from adlens.models.ad_models import AdRecord
from adlens.models.analytics_models import TopAd
from adlens.core.logging import get_logger

logger = get_logger("analyzer.ranking")

ACTIVE_WITHIN_DAYS = 7


def _parse_date(value: Optional[str]) -> Optional[date]:
    """Parse the date part of a date-like string; None if it isn't one."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _recency(r: AdRecord) -> Tuple[date, int]:
    """Order rows by last spend date, then by week."""
    return (_parse_date(r.last_ad_spend_date) or date.min, week_index(r.week_number))


def aggregate_by_ad(records: Sequence[AdRecord]) -> List[TopAd]:
    """One entry per ad name: summed spend and impressions, other fields
    taken from the ad's most recent row."""
    totals: Dict[str, List[float]] = {}
    latest: Dict[str, AdRecord] = {}
    for r in records:
        spend_impressions = totals.setdefault(r.ad_name, [0.0, 0.0])
        spend_impressions[0] += r.spend_usd
        spend_impressions[1] += r.impressions
        current = latest.get(r.ad_name)
        if current is None or _recency(r) > _recency(current):
            latest[r.ad_name] = r

    return [
        TopAd(
            name=name,
            spend=spend,
            impressions=impressions,
            days_running=latest[name].days_running,
            creative_type=latest[name].creative_type,
            creative_hub=latest[name].is_creative_hub == 1,
            week_number=latest[name].week_number,
            first_ad_spend_date=latest[name].first_ad_spend_date,
            last_ad_spend_date=latest[name].last_ad_spend_date,
        )
        for name, (spend, impressions) in totals.items()
    ]


def ad_status(ad: TopAd, now: datetime | None = None) -> str:
    """Return "Active" if the ad spent within the last week and is still running."""
    today = (now or datetime.now(timezone.utc)).date()
    last_spend = _parse_date(ad.last_ad_spend_date)
    if (
        last_spend is not None
        and today - last_spend <= timedelta(days=ACTIVE_WITHIN_DAYS)
        and ad.days_running > 0
    ):
        return "Active"
    return "Inactive"


def generate_top_ads(
    records: Sequence[AdRecord],
    limit: int | None = None,
    now: datetime | None = None,
) -> List[TopAd]:
    """Top ads by total spend, highest first."""
    limit = settings.top_ads_limit if limit is None else limit
    ads = sorted(aggregate_by_ad(records), key=lambda a: a.spend, reverse=True)[
        :limit
    ]
    for a in ads:
        a.status = ad_status(a, now)
    logger.info(f"Ranked {len(ads)} top ads")
    return ads
