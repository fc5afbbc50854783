"""AdLens — Trend Engine.

Week-over-week spend change between the two latest weeks in the data.
"""

from collections import defaultdict
from typing import Dict, Sequence

from adlens.analyzer.weeks import sort_weeks
from adlens.models.ad_models import AdRecord
from adlens.core.logging import get_logger

logger = get_logger("analyzer.trend")


def spend_by_week(records: Sequence[AdRecord]) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for r in records:
        totals[r.week_number] += r.spend_usd
    return dict(totals)


def calculate_spend_change(records: Sequence[AdRecord]) -> float:
    """Percent change of the latest week's spend against the week before.

    Fewer than two weeks, or a previous week with zero spend, is reported
    as no change (0.0).
    """
    totals = spend_by_week(records)
    weeks = sort_weeks(totals)
    if len(weeks) < 2:
        return 0.0

    latest = totals[weeks[-1]]
    previous = totals[weeks[-2]]
    if previous == 0:
        return 0.0

    change = (latest - previous) / previous * 100
    logger.info(f"Spend change {weeks[-2]} → {weeks[-1]}: {change:+.1f}%")
    return change
