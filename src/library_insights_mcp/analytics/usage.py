"""Visit usage aggregation.

Buckets visit entry times by hour of day and day of week over a lookback
window. Day-of-week keys follow the document-store ``$dayOfWeek``
convention: 1=Sunday through 7=Saturday.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any

from ..models.reports import DayBucket, HeatmapCell, HeatmapReport, HourBucket, UsageBuckets
from .dates import coerce_date, utc_now
from .fields import read_field

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "Main"

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

HOURS = range(24)
DAYS_OF_WEEK = range(1, 8)


def day_of_week(moment: datetime) -> int:
    """1=Sunday ... 7=Saturday."""
    return moment.isoweekday() % 7 + 1


def weekday_label(dow: int) -> str:
    if dow in DAYS_OF_WEEK:
        return WEEKDAY_NAMES[dow - 1]
    return f"Day {dow}"


def clamp_lookback(lookback_days: Any) -> int:
    """Lookback windows shorter than one day are treated as one day."""
    try:
        days = int(lookback_days)
    except (TypeError, ValueError):
        return 1
    return max(1, days)


def lookback_window(now: Any, lookback_days: Any) -> tuple[datetime, datetime]:
    """Return ``(since, until)`` for a window ending at ``now``."""
    until = coerce_date(now) or utc_now()
    return until - timedelta(days=clamp_lookback(lookback_days)), until


def _visit_branch(visit: Any) -> str:
    raw = read_field(visit, "branch")
    text = str(raw).strip() if raw is not None else ""
    return text or DEFAULT_BRANCH


def _entries_in_window(
    visits: Iterable[Any],
    since: datetime,
    until: datetime,
    branch: str | None,
    tz: tzinfo,
) -> Iterator[datetime]:
    wanted = branch.strip() if branch else None
    skipped = 0
    for visit in visits or ():
        entered = coerce_date(read_field(visit, "entered_at", "enteredAt"))
        if entered is None:
            skipped += 1
            continue
        if not since <= entered <= until:
            continue
        if wanted and _visit_branch(visit) != wanted:
            continue
        yield entered.astimezone(tz)
    if skipped:
        logger.debug("Skipped %d visits with unreadable entry times", skipped)


def aggregate_visit_usage(
    visits: Iterable[Any],
    *,
    now: Any,
    lookback_days: int,
    branch: str | None = None,
    tz: tzinfo = UTC,
) -> UsageBuckets:
    """Count visits per hour of day and per day of week.

    Only visits entering within ``[now - lookback_days, now]`` are counted,
    optionally restricted to one ``branch``. The returned buckets are sparse
    (non-zero only) and sorted ascending by key; use :func:`densify_hours`
    and :func:`densify_days` for the full domain.
    """
    since, until = lookback_window(now, lookback_days)
    hourly: Counter[int] = Counter()
    daily: Counter[int] = Counter()

    for entered in _entries_in_window(visits, since, until, branch, tz):
        hourly[entered.hour] += 1
        daily[day_of_week(entered)] += 1

    return UsageBuckets(
        since=since,
        until=until,
        branch=branch,
        total_visits=sum(hourly.values()),
        hourly=[HourBucket(hour=hour, count=count) for hour, count in sorted(hourly.items())],
        daily=[DayBucket(dow=dow, count=count) for dow, count in sorted(daily.items())],
    )


def aggregate_visit_heatmap(
    visits: Iterable[Any],
    *,
    now: Any,
    lookback_days: int,
    branch: str | None = None,
    tz: tzinfo = UTC,
) -> HeatmapReport:
    """Count visits per (day of week, hour) cell, sorted by day then hour."""
    since, until = lookback_window(now, lookback_days)
    cells: Counter[tuple[int, int]] = Counter()

    for entered in _entries_in_window(visits, since, until, branch, tz):
        cells[(day_of_week(entered), entered.hour)] += 1

    return HeatmapReport(
        since=since,
        until=until,
        branch=branch,
        items=[
            HeatmapCell(dow=dow, hour=hour, count=count)
            for (dow, hour), count in sorted(cells.items())
        ],
    )


def bucket_counts(buckets: Iterable[Any] | None, key: str) -> dict[int, int]:
    """Collapse bucket models or ``{key: n, "count": m}`` mappings into ``{n: m}``.

    Buckets with a non-numeric key or count are dropped; repeated keys are
    summed.
    """
    counts: dict[int, int] = {}
    for bucket in buckets or ():
        try:
            period = int(read_field(bucket, key))
            count = int(read_field(bucket, "count", default=0) or 0)
        except (TypeError, ValueError):
            continue
        counts[period] = counts.get(period, 0) + max(0, count)
    return counts


def densify_hours(buckets: Iterable[Any] | None) -> list[HourBucket]:
    counts = bucket_counts(buckets, "hour")
    return [HourBucket(hour=hour, count=counts.get(hour, 0)) for hour in HOURS]


def densify_days(buckets: Iterable[Any] | None) -> list[DayBucket]:
    counts = bucket_counts(buckets, "dow")
    return [DayBucket(dow=dow, count=counts.get(dow, 0)) for dow in DAYS_OF_WEEK]
