"""
Loan-status and analytics engine.

Pure functions over record snapshots. Nothing in this package performs I/O
or reads the wall clock unless ``now`` is omitted:

- dates: ``coerce_date`` and day arithmetic
- loan_status: returned / overdue / active classification
- usage: hourly, daily and heatmap visit buckets
- staffing: peak-period staffing recommendations
- reports: borrower, genre, idle-book, fines, loan-activity and circulation reports
"""

from .dates import coerce_date, utc_now, whole_days_between
from .loan_status import days_overdue, resolve_loan_status_meta
from .usage import (
    DEFAULT_BRANCH,
    aggregate_visit_heatmap,
    aggregate_visit_usage,
    densify_days,
    densify_hours,
)
from .staffing import build_staffing_recommendations
from .reports import (
    build_circulation_snapshot,
    build_fines_report,
    build_genre_trends,
    build_loan_activity,
    build_overdue_report,
    build_top_books,
    build_top_borrowers,
    build_underutilized_books,
)

__all__ = [
    "DEFAULT_BRANCH",
    "aggregate_visit_heatmap",
    "aggregate_visit_usage",
    "build_circulation_snapshot",
    "build_fines_report",
    "build_genre_trends",
    "build_loan_activity",
    "build_overdue_report",
    "build_staffing_recommendations",
    "build_top_books",
    "build_top_borrowers",
    "build_underutilized_books",
    "coerce_date",
    "days_overdue",
    "densify_days",
    "densify_hours",
    "resolve_loan_status_meta",
    "utc_now",
    "whole_days_between",
]
