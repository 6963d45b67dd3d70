"""Staffing recommendations from peak visit periods."""

import logging
import math
from collections.abc import Iterable
from typing import Any

from ..models.reports import BusyDay, PeakHour, StaffingReport
from .usage import bucket_counts, clamp_lookback, weekday_label

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5

# Peak hours that get their own advisory line
ADVISED_PEAK_HOURS = 3


def clamp_visits_per_staff(visits_per_staff: Any) -> int | float:
    """Non-positive or non-numeric ratios fall back to 1."""
    try:
        ratio = float(visits_per_staff)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(ratio) or ratio <= 0:
        logger.debug("visits_per_staff=%r is not usable, falling back to 1", visits_per_staff)
        return 1
    return int(ratio) if ratio.is_integer() else ratio


def recommended_staff(count: int, visits_per_staff: int | float) -> int:
    """``ceil(count / visits_per_staff)``, at least 1 whenever there were visits."""
    if count <= 0:
        return 0
    return max(1, math.ceil(count / visits_per_staff))


def hour_label(hour: int) -> str:
    return f"{hour:02d}:00-{(hour + 1) % 24:02d}:00"


def _period_phrase(lookback_days: int) -> str:
    if lookback_days == 1:
        return "in the last day"
    return f"in the last {lookback_days} days"


def build_staffing_recommendations(
    hourly_buckets: Iterable[Any] | None,
    day_buckets: Iterable[Any] | None,
    *,
    lookback_days: int,
    visits_per_staff: Any,
    top_n: int = DEFAULT_TOP_N,
) -> StaffingReport:
    """Rank peak hours and busy days and suggest staff counts.

    Args:
        hourly_buckets: ``HourBucket`` models or ``{"hour", "count"}`` mappings
        day_buckets: ``DayBucket`` models or ``{"dow", "count"}`` mappings
        lookback_days: Window the buckets cover (echoed in the report)
        visits_per_staff: Visits one staff member can handle over the window
        top_n: Maximum number of peak hours returned (``<= 0`` for all)

    Returns:
        A report with peak hours (count desc, hour asc), busy days (count
        desc, day asc) and advisory text. Empty buckets give empty lists.
    """
    days = clamp_lookback(lookback_days)
    ratio = clamp_visits_per_staff(visits_per_staff)

    hour_counts = bucket_counts(hourly_buckets, "hour")
    ranked_hours = sorted(
        ((hour, count) for hour, count in hour_counts.items() if count > 0 and 0 <= hour <= 23),
        key=lambda item: (-item[1], item[0]),
    )
    if top_n and top_n > 0:
        ranked_hours = ranked_hours[:top_n]

    peak_hours = [
        PeakHour(
            hour=hour,
            label=hour_label(hour),
            count=count,
            recommended_staff=recommended_staff(count, ratio),
        )
        for hour, count in ranked_hours
    ]

    day_counts = bucket_counts(day_buckets, "dow")
    ranked_days = sorted(
        ((dow, count) for dow, count in day_counts.items() if count > 0 and 1 <= dow <= 7),
        key=lambda item: (-item[1], item[0]),
    )
    busy_days = [
        BusyDay(
            dow=dow,
            label=weekday_label(dow),
            count=count,
            recommended_staff=recommended_staff(count, ratio),
        )
        for dow, count in ranked_days
    ]

    return StaffingReport(
        lookback_days=days,
        visits_per_staff=ratio,
        peak_hours=peak_hours,
        busy_days=busy_days,
        recommendations=_advise(peak_hours, busy_days, days),
    )


def _advise(peak_hours: list[PeakHour], busy_days: list[BusyDay], lookback_days: int) -> list[str]:
    period = _period_phrase(lookback_days)
    lines = [
        f"Schedule {peak.recommended_staff} staff for {peak.label} "
        f"({peak.count} visits {period})."
        for peak in peak_hours[:ADVISED_PEAK_HOURS]
    ]

    if busy_days:
        busiest = busy_days[0]
        lines.append(
            f"{busiest.label} is the busiest day with {busiest.count} visits {period}; "
            f"plan for {busiest.recommended_staff} staff on duty."
        )
    if len(busy_days) > 1:
        quietest = busy_days[-1]
        lines.append(
            f"{quietest.label} is the quietest day with {quietest.count} visits {period}; "
            f"{quietest.recommended_staff} staff should cover it."
        )
    return lines
