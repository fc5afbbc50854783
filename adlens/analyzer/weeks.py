"""AdLens — Week Label Helpers.

Week labels look like ``W07``: a ``W`` and a zero-padded week of the year.
"""

import math
from datetime import datetime
from typing import Iterable, List


def week_index(week: str) -> int:
    """Numeric part of a week label; unparseable labels sort first."""
    try:
        return int(str(week).lstrip("Ww"))
    except ValueError:
        return 0


def format_week(n: int) -> str:
    return f"W{n:02d}"


def sort_weeks(weeks: Iterable[str]) -> List[str]:
    """Sort week labels by their numeric suffix."""
    return sorted(weeks, key=week_index)


def current_week_number(now: datetime | None = None) -> int:
    """Week of the year counted in whole 7-day blocks from January 1st."""
    now = now or datetime.now()
    start = datetime(now.year, 1, 1, tzinfo=now.tzinfo)
    return max(1, math.ceil((now - start).total_seconds() / (7 * 24 * 3600)))


def window_start_week(weeks_back: int, now: datetime | None = None) -> str:
    """First week label inside a window reaching ``weeks_back`` weeks back.

    Clamped to W01, so early in the year the window covers the whole year.
    """
    return format_week(max(1, current_week_number(now) - weeks_back))
