"""AdLens — Designer Attribution Engine.

Ad names embed the designer's initials between underscores, e.g.
``CB_JD_UGC_v3`` belongs to designer ``JD``.
"""

from collections import defaultdict
from typing import Dict, List, Sequence

from adlens.analyzer.scaling_engine import classify_by_lifetime_spend, spend_tier
from adlens.analyzer.weeks import week_index
from adlens.models.ad_models import AdRecord, Designer
from adlens.models.analytics_models import (
    DesignerPerformance,
    DesignerWeek,
    DesignerWeeklyPerformance,
)
from adlens.core.logging import get_logger

logger = get_logger("analyzer.designer")


def designer_rows(records: Sequence[AdRecord], initials: str) -> List[AdRecord]:
    """Rows whose ad name contains ``_{initials}_``."""
    marker = f"_{initials}_"
    return [r for r in records if marker in r.ad_name]


def calculate_designer_performance(
    records: Sequence[AdRecord],
    designers: Sequence[Designer],
) -> List[DesignerPerformance]:
    """Per-designer totals, highest spend first."""
    results: List[DesignerPerformance] = []
    for d in designers:
        rows = designer_rows(records, d.initials)
        results.append(
            DesignerPerformance(
                initials=d.initials,
                name=" ".join(p for p in (d.name, d.surname) if p),
                ads_count=len({r.ad_name for r in rows}),
                total_spend=sum(r.spend_usd for r in rows),
                active_weeks=len({r.week_number for r in rows}),
                video_ads=len({r.ad_name for r in rows if r.creative_type == "VIDEO"}),
                image_ads=len({r.ad_name for r in rows if r.creative_type == "IMAGE"}),
                scaled_ads=classify_by_lifetime_spend(rows).scaled_ads,
            )
        )

    results.sort(key=lambda p: p.total_spend, reverse=True)
    logger.info(f"Computed performance for {len(results)} designers")
    return results


def calculate_designer_weekly_performance(
    records: Sequence[AdRecord],
    initials: str,
) -> DesignerWeeklyPerformance:
    """Week-by-week output of one designer, oldest week first.

    Anything that is not a video counts as an image here.
    """
    rows = designer_rows(records, initials)

    ads: Dict[str, set] = defaultdict(set)
    videos: Dict[str, set] = defaultdict(set)
    images: Dict[str, set] = defaultdict(set)
    spend: Dict[str, float] = defaultdict(float)
    spend_by_ad: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for r in rows:
        ads[r.week_number].add(r.ad_name)
        (videos if r.creative_type == "VIDEO" else images)[r.week_number].add(
            r.ad_name
        )
        spend[r.week_number] += r.spend_usd
        spend_by_ad[r.week_number][r.ad_name] += r.spend_usd

    weeks = [
        DesignerWeek(
            week=week,
            total_ads=len(ads[week]),
            video_ads=len(videos[week]),
            image_ads=len(images[week]),
            scaled_ads=sum(
                1 for s in spend_by_ad[week].values() if spend_tier(s) == "scaled"
            ),
            total_spend=spend[week],
        )
        for week in sorted(ads, key=week_index)
    ]

    return DesignerWeeklyPerformance(
        initials=initials,
        weeks=weeks,
        total_ads=len({r.ad_name for r in rows}),
        total_spend=sum(r.spend_usd for r in rows),
    )
