"""Date coercion shared by every analytics module.

Loan, visit and book snapshots arrive from several places: ORM rows carry
``datetime`` objects, JSON exports carry ISO strings or epoch milliseconds,
and document-store dumps wrap values as ``{"$date": ...}``. Everything is
normalized here into timezone-aware UTC datetimes, or ``None`` when the
value cannot be read as a date. Nothing in this module raises.
"""

import math
from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Any

DAY = timedelta(days=1)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MAX_WRAPPER_DEPTH = 4


def utc_now() -> datetime:
    """Current instant in UTC."""
    return datetime.now(UTC)


def coerce_date(value: Any) -> datetime | None:
    """Normalize ``value`` into an aware UTC datetime.

    Accepted shapes:

    - ``datetime``: a new equal instance (naive values are read as UTC)
    - ``date``: midnight UTC on that day
    - finite ``int``/``float``: epoch milliseconds
    - non-empty ``str``: ISO-8601 (``Z`` suffix allowed) or RFC 2822
    - ``{"$date": ...}``: the wrapped value, coerced recursively
    - ``{"$numberLong": "..."}``: epoch milliseconds as a string

    Returns:
        The coerced datetime, or ``None`` for anything unreadable.
    """
    return _coerce(value, 0)


def _coerce(value: Any, depth: int) -> datetime | None:
    if isinstance(value, datetime):
        return _copy_as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    # bool is an int subclass; True is not a timestamp
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return _from_epoch_ms(value)
    if isinstance(value, str):
        return _parse_text(value)
    if isinstance(value, Mapping) and depth < _MAX_WRAPPER_DEPTH:
        if "$date" in value:
            return _coerce(value["$date"], depth + 1)
        if "$numberLong" in value:
            try:
                millis = int(str(value["$numberLong"]).strip())
            except ValueError:
                return None
            return _from_epoch_ms(millis)
    return None


def _copy_as_utc(value: datetime) -> datetime | None:
    if value.tzinfo is not None:
        try:
            value = value.astimezone(UTC)
        except (OverflowError, ValueError):
            return None
    # always build a fresh object; astimezone() hands back self for UTC input
    return datetime(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tzinfo=UTC,
    )


def _from_epoch_ms(millis: float) -> datetime | None:
    if not math.isfinite(millis):
        return None
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None


def _parse_text(text: str) -> datetime | None:
    text = text.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # RFC 2822, as produced by HTTP headers and Date.toUTCString()
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, OverflowError):
            return None
    return _copy_as_utc(parsed)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of whole days from ``start`` to ``end`` (floored)."""
    return math.floor((end - start) / DAY)
