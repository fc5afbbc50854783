"""AdLens — Creative Hub Engine.

Creative Hub ads are flagged with ``is_creative_hub = 1`` or carry ``_CHUB_``
in their name (any case). Designer attribution inside the hub works the
same way as for the whole product.
"""

from collections import defaultdict
from typing import Dict, List, Sequence

from adlens.analyzer.designer_engine import calculate_designer_performance
from adlens.analyzer.scaling_engine import classify_by_weekly_spend, spend_tier
from adlens.analyzer.weeks import week_index
from adlens.models.ad_models import AdRecord, Designer
from adlens.models.analytics_models import (
    CreativeHubStats,
    CreativeHubWeek,
    DesignerPerformance,
)
from adlens.core.logging import get_logger

logger = get_logger("analyzer.creative_hub")

HUB_NAME_MARKER = "_CHUB_"


def is_creative_hub_ad(r: AdRecord) -> bool:
    return r.is_creative_hub == 1 or HUB_NAME_MARKER in r.ad_name.upper()


def creative_hub_rows(records: Sequence[AdRecord]) -> List[AdRecord]:
    return [r for r in records if is_creative_hub_ad(r)]


def calculate_creative_hub_stats(records: Sequence[AdRecord]) -> CreativeHubStats:
    """Totals for Creative Hub ads.

    An ad counts as scaled if any of its weeks scaled, otherwise as working
    if any of its weeks was working.
    """
    hub_rows = creative_hub_rows(records)
    if not hub_rows:
        return CreativeHubStats()

    creative_types: Dict[str, str] = {}
    for r in hub_rows:
        creative_types.setdefault(r.ad_name, r.creative_type)

    tiers: Dict[str, set] = defaultdict(set)
    for classification in classify_by_weekly_spend(hub_rows).values():
        for name in classification.scaled_names:
            tiers[name].add("scaled")
        for name in classification.working_names:
            tiers[name].add("working")

    stats = CreativeHubStats(
        total_spend=round(sum(r.spend_usd for r in hub_rows), 2),
        total_ads=len(creative_types),
        scaled_ads=sum(1 for t in tiers.values() if "scaled" in t),
        working_ads=sum(1 for t in tiers.values() if t == {"working"}),
        video_ads=sum(1 for c in creative_types.values() if c == "VIDEO"),
        image_ads=sum(1 for c in creative_types.values() if c == "IMAGE"),
    )
    logger.info(
        f"Creative Hub: {stats.total_ads} ads, {stats.scaled_ads} scaled, "
        f"{stats.working_ads} working"
    )
    return stats


def generate_creative_hub_weekly_data(
    records: Sequence[AdRecord],
) -> List[CreativeHubWeek]:
    """Per-week Creative Hub rollup, oldest week first.

    Scaled counts use each ad's spend within the week.
    """
    ads: Dict[str, set] = defaultdict(set)
    videos: Dict[str, set] = defaultdict(set)
    images: Dict[str, set] = defaultdict(set)
    spend_by_ad: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for r in creative_hub_rows(records):
        if not r.week_number:
            continue
        ads[r.week_number].add(r.ad_name)
        if r.creative_type == "VIDEO":
            videos[r.week_number].add(r.ad_name)
        elif r.creative_type == "IMAGE":
            images[r.week_number].add(r.ad_name)
        spend_by_ad[r.week_number][r.ad_name] += r.spend_usd

    weeks = [
        CreativeHubWeek(
            week=week,
            total_ads=len(ads[week]),
            video_ads=len(videos[week]),
            image_ads=len(images[week]),
            scaled_ads=sum(
                1 for s in spend_by_ad[week].values() if spend_tier(s) == "scaled"
            ),
            total_spend=round(sum(spend_by_ad[week].values()), 2),
        )
        for week in sorted(ads, key=week_index)
    ]
    logger.info(f"Creative Hub weekly rollup for {len(weeks)} weeks")
    return weeks


def calculate_creative_hub_designers(
    records: Sequence[AdRecord],
    designers: Sequence[Designer],
) -> List[DesignerPerformance]:
    """Designer totals over Creative Hub ads only, highest spend first."""
    return calculate_designer_performance(creative_hub_rows(records), designers)
