"""Report Resources - Library Analytics

Exposes the analytics engine as read-only MCP resources. Every handler
loads a fresh record snapshot, runs one report builder and returns the
camelCase JSON payload. Rendered payloads are kept in a short-TTL response
cache keyed by URI.

Resources:
- library://reports/top-borrowers/{days}/{limit} - Most active borrowers
- library://reports/genre-trends/{days}/{limit} - Topic borrows vs. the prior window
- library://reports/underutilized/{days}/{limit} - Idle and never-borrowed books
- library://reports/fines/{limit} - Outstanding fines for overdue loans
- library://reports/top-books/{days}/{limit} - Most borrowed books
- library://reports/overdue/{limit} - Overdue loans, oldest first
- library://reports/activity/{days}/{limit} - Recent loans, newest first
- library://analytics/staffing/{days} - Staffing recommendations from peak hours
- library://analytics/heatmap/{days} - Visits per weekday and hour
- library://analytics/circulation - Today's gate traffic and loan counts
"""

import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from fastmcp.exceptions import ResourceError

from ..analytics.dates import utc_now
from ..analytics.reports import (
    build_circulation_snapshot,
    build_fines_report,
    build_genre_trends,
    build_loan_activity,
    build_overdue_report,
    build_top_books,
    build_top_borrowers,
    build_underutilized_books,
)
from ..analytics.staffing import build_staffing_recommendations
from ..analytics.usage import aggregate_visit_heatmap, aggregate_visit_usage
from ..cache import ResponseCache
from ..config import get_config
from ..database.session import session_scope
from ..database.snapshots import LibrarySnapshotRepository
from ..observability import trace_report

logger = logging.getLogger(__name__)

MAX_DAYS = 365
MAX_LIMIT = 100
MAX_ACTIVITY_DAYS = 180

# Open visits older than this are not counted as "inside"
CIRCULATION_VISIT_WINDOW = timedelta(days=2)


class _CacheStore:
    """Internal storage for the response cache singleton."""

    _instance: ResponseCache | None = None


def get_response_cache() -> ResponseCache:
    """Get or create the response cache, sized from configuration."""
    if _CacheStore._instance is None:  # type: ignore[reportPrivateUsage]
        _CacheStore._instance = ResponseCache(ttl_seconds=get_config().resource_cache_ttl)  # type: ignore[reportPrivateUsage]
    return _CacheStore._instance  # type: ignore[reportPrivateUsage]


def reset_response_cache() -> None:
    """Drop the response cache (useful for testing)."""
    _CacheStore._instance = None  # type: ignore[reportPrivateUsage]


def _parse_range(name: str, value: str | int, low: int, high: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ResourceError(f"{name} must be an integer, got {value!r}") from e
    if not low <= parsed <= high:
        raise ResourceError(f"{name} must be between {low} and {high}")
    return parsed


def _repository(session: Any) -> LibrarySnapshotRepository:
    return LibrarySnapshotRepository(session, default_branch=get_config().default_branch)


def _serve(uri: str, label: str, compute: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    """Return the cached payload for ``uri`` or build it with ``compute``."""
    logger.debug("MCP Resource Request - %s", uri)
    try:
        return get_response_cache().get_or_compute(uri, compute)
    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in %s resource", label)
        raise ResourceError(f"Failed to build {label} report: {e!s}") from e


# =============================================================================
# REPORT HANDLERS
# =============================================================================


@trace_report("top-borrowers")
async def get_top_borrowers_handler(days: str, limit: str) -> dict[str, Any]:
    """Borrowers ranked by loans taken out in the last ``days`` days."""
    days_int = _parse_range("days", days, 1, MAX_DAYS)
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(since=now - timedelta(days=days_int))
            borrowers = repo.load_borrowers()
        report = build_top_borrowers(
            loans, borrowers, now=now, lookback_days=days_int, limit=limit_int
        )
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/top-borrowers/{days_int}/{limit_int}", "top-borrowers", compute)


@trace_report("genre-trends")
async def get_genre_trends_handler(days: str, limit: str) -> dict[str, Any]:
    """Topic borrows in the last ``days`` days against the ``days`` before that."""
    days_int = _parse_range("days", days, 1, MAX_DAYS)
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(since=now - timedelta(days=2 * days_int))
            books = repo.load_books()
        report = build_genre_trends(loans, books, now=now, lookback_days=days_int, limit=limit_int)
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/genre-trends/{days_int}/{limit_int}", "genre-trends", compute)


@trace_report("underutilized")
async def get_underutilized_handler(days: str, limit: str) -> dict[str, Any]:
    """Books borrowed at most ``underutilized_max_borrows`` times in the window."""
    days_int = _parse_range("days", days, 1, MAX_DAYS)
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        config = get_config()
        now = utc_now()
        # full history: idle time runs from the last return, however old
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans()
            books = repo.load_books()
        report = build_underutilized_books(
            loans,
            books,
            now=now,
            lookback_days=days_int,
            max_borrows=config.underutilized_max_borrows,
            limit=limit_int,
        )
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/underutilized/{days_int}/{limit_int}", "underutilized", compute)


@trace_report("fines")
async def get_fines_handler(limit: str) -> dict[str, Any]:
    """Outstanding fines at the configured daily rate."""
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        config = get_config()
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(active_only=True)
            books = repo.load_books()
            borrowers = repo.load_borrowers()
        report = build_fines_report(
            loans, books, borrowers, now=now, fine_per_day=config.fine_per_day, limit=limit_int
        )
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/fines/{limit_int}", "fines", compute)


@trace_report("top-books")
async def get_top_books_handler(days: str, limit: str) -> dict[str, Any]:
    days_int = _parse_range("days", days, 1, MAX_DAYS)
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(since=now - timedelta(days=days_int))
            books = repo.load_books()
        report = build_top_books(loans, books, now=now, lookback_days=days_int, limit=limit_int)
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/top-books/{days_int}/{limit_int}", "top-books", compute)


@trace_report("overdue")
async def get_overdue_handler(limit: str) -> dict[str, Any]:
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(active_only=True)
            books = repo.load_books()
            borrowers = repo.load_borrowers()
        report = build_overdue_report(loans, books, borrowers, now=now, limit=limit_int)
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/overdue/{limit_int}", "overdue", compute)


@trace_report("activity")
async def get_loan_activity_handler(days: str, limit: str) -> dict[str, Any]:
    """Loans borrowed in the last ``days`` days, labelled Borrowed, Returned or Overdue."""
    days_int = _parse_range("days", days, 1, MAX_ACTIVITY_DAYS)
    limit_int = _parse_range("limit", limit, 1, MAX_LIMIT)

    def compute() -> dict[str, Any]:
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(since=now - timedelta(days=days_int))
            books = repo.load_books()
            borrowers = repo.load_borrowers()
        report = build_loan_activity(
            loans, books, borrowers, now=now, lookback_days=days_int, limit=limit_int
        )
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://reports/activity/{days_int}/{limit_int}", "activity", compute)


# =============================================================================
# ANALYTICS HANDLERS
# =============================================================================


@trace_report("staffing")
async def get_staffing_handler(days: str) -> dict[str, Any]:
    """Peak hours and busy days with recommended staff counts."""
    days_int = _parse_range("days", days, 1, MAX_DAYS)

    def compute() -> dict[str, Any]:
        config = get_config()
        now = utc_now()
        with session_scope() as session:
            visits = _repository(session).load_visits(since=now - timedelta(days=days_int))
        usage = aggregate_visit_usage(visits, now=now, lookback_days=days_int, tz=config.tzinfo)
        report = build_staffing_recommendations(
            usage.hourly,
            usage.daily,
            lookback_days=days_int,
            visits_per_staff=config.visits_per_staff,
            top_n=config.staffing_top_n,
        )
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://analytics/staffing/{days_int}", "staffing", compute)


@trace_report("heatmap")
async def get_heatmap_handler(days: str) -> dict[str, Any]:
    days_int = _parse_range("days", days, 1, MAX_DAYS)

    def compute() -> dict[str, Any]:
        config = get_config()
        now = utc_now()
        with session_scope() as session:
            visits = _repository(session).load_visits(since=now - timedelta(days=days_int))
        report = aggregate_visit_heatmap(visits, now=now, lookback_days=days_int, tz=config.tzinfo)
        return report.model_dump(by_alias=True, mode="json")

    return _serve(f"library://analytics/heatmap/{days_int}", "heatmap", compute)


@trace_report("circulation")
async def get_circulation_handler() -> dict[str, Any]:
    """Today's entries, exits and open visits, plus active and overdue loans."""

    def compute() -> dict[str, Any]:
        config = get_config()
        now = utc_now()
        with session_scope() as session:
            repo = _repository(session)
            loans = repo.load_loans(active_only=True)
            visits = repo.load_visits(since=now - CIRCULATION_VISIT_WINDOW)
        snapshot = build_circulation_snapshot(loans, visits, now=now, tz=config.tzinfo)
        return snapshot.model_dump(by_alias=True, mode="json")

    return _serve("library://analytics/circulation", "circulation", compute)


report_resources: list[dict[str, Any]] = [
    {
        "uri_template": "library://reports/top-borrowers/{days}/{limit}",
        "name": "Top Borrowers",
        "description": (
            "Borrowers ranked by loans in the last {days} days, with active and "
            "overdue counts and share of all borrows. days is 1-365, limit is 1-100."
        ),
        "mime_type": "application/json",
        "handler": get_top_borrowers_handler,
    },
    {
        "uri_template": "library://reports/genre-trends/{days}/{limit}",
        "name": "Genre Trends",
        "description": (
            "Borrows per topic in the last {days} days compared with the {days} days "
            "before, with growth percentages. days is 1-365, limit is 1-100."
        ),
        "mime_type": "application/json",
        "handler": get_genre_trends_handler,
    },
    {
        "uri_template": "library://reports/underutilized/{days}/{limit}",
        "name": "Underutilized Books",
        "description": (
            "Books with few or no borrows in the last {days} days, never-borrowed "
            "titles first, then by days idle. days is 1-365, limit is 1-100."
        ),
        "mime_type": "application/json",
        "handler": get_underutilized_handler,
    },
    {
        "uri_template": "library://reports/fines/{limit}",
        "name": "Outstanding Fines",
        "description": (
            "Fines for overdue, unreturned loans at the configured daily rate, "
            "largest first, with outstanding totals. limit is 1-100."
        ),
        "mime_type": "application/json",
        "handler": get_fines_handler,
    },
    {
        "uri_template": "library://reports/top-books/{days}/{limit}",
        "name": "Top Books",
        "description": (
            "Most borrowed books in the last {days} days. days is 1-365, limit is 1-100."
        ),
        "mime_type": "application/json",
        "handler": get_top_books_handler,
    },
    {
        "uri_template": "library://reports/overdue/{limit}",
        "name": "Overdue Loans",
        "description": "Overdue loans with borrower and title, oldest due date first. limit is 1-100.",
        "mime_type": "application/json",
        "handler": get_overdue_handler,
    },
    {
        "uri_template": "library://reports/activity/{days}/{limit}",
        "name": "Loan Activity",
        "description": (
            "Loans borrowed in the last {days} days, newest first, with borrower, "
            "title and a Borrowed, Returned or Overdue status. days is 1-180, limit is 1-100."
        ),
        "mime_type": "application/json",
        "handler": get_loan_activity_handler,
    },
    {
        "uri_template": "library://analytics/staffing/{days}",
        "name": "Staffing Recommendations",
        "description": (
            "Peak visit hours and busiest weekdays over the last {days} days with "
            "recommended staff counts and advisory text. days is 1-365."
        ),
        "mime_type": "application/json",
        "handler": get_staffing_handler,
    },
    {
        "uri_template": "library://analytics/heatmap/{days}",
        "name": "Visit Heatmap",
        "description": "Visit counts per weekday and hour over the last {days} days. days is 1-365.",
        "mime_type": "application/json",
        "handler": get_heatmap_handler,
    },
    {
        "uri": "library://analytics/circulation",
        "name": "Circulation Snapshot",
        "description": (
            "Today's gate entries and exits, visitors currently inside, and active "
            "and overdue loan counts."
        ),
        "mime_type": "application/json",
        "handler": get_circulation_handler,
    },
]
