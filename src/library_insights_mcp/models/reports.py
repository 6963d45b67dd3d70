"""
Report payload models for the Library Insights MCP Server.

Every analytics builder returns one of these models. They are derived,
never persisted, and serialize to the camelCase JSON shape the dashboard
consumes:

    report.model_dump(by_alias=True, mode="json")

Python code keeps using the snake_case attribute names.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
    """Base class for report payloads: camelCase aliases, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )


# =============================================================================
# LOAN STATUS
# =============================================================================


class LoanStatusKey(str, Enum):
    """Programmatic loan state. Never influenced by display configuration."""

    RETURNED = "returned"
    OVERDUE = "overdue"
    ACTIVE = "active"


class LoanStatusMeta(ReportModel):
    """Loan state plus the label shown to users."""

    key: LoanStatusKey
    label: str


# =============================================================================
# USAGE BUCKETS
# =============================================================================


class HourBucket(ReportModel):
    """Visit count for one hour of the day."""

    hour: int = Field(..., ge=0, le=23)
    count: int = Field(..., ge=0)


class DayBucket(ReportModel):
    """Visit count for one day of the week (1=Sunday ... 7=Saturday)."""

    dow: int = Field(..., ge=1, le=7)
    count: int = Field(..., ge=0)


class HeatmapCell(ReportModel):
    """Visit count for one (day-of-week, hour) pair."""

    dow: int = Field(..., ge=1, le=7)
    hour: int = Field(..., ge=0, le=23)
    count: int = Field(..., ge=0)


class UsageBuckets(ReportModel):
    """Sparse hourly and daily visit buckets over a lookback window."""

    since: datetime
    until: datetime
    branch: str | None = None
    total_visits: int = 0
    hourly: list[HourBucket] = Field(default_factory=list)
    daily: list[DayBucket] = Field(default_factory=list)


class HeatmapReport(ReportModel):
    since: datetime
    until: datetime
    branch: str | None = None
    items: list[HeatmapCell] = Field(default_factory=list)


# =============================================================================
# STAFFING
# =============================================================================


class PeakHour(ReportModel):
    hour: int = Field(..., ge=0, le=23)
    label: str = Field(..., description="Hour range, e.g. 09:00-10:00")
    count: int
    recommended_staff: int


class BusyDay(ReportModel):
    dow: int = Field(..., ge=1, le=7)
    label: str = Field(..., description="Weekday name, e.g. Tuesday")
    count: int
    recommended_staff: int


class StaffingReport(ReportModel):
    """Staffing recommendations derived from peak visit periods."""

    lookback_days: int
    visits_per_staff: int | float
    peak_hours: list[PeakHour] = Field(default_factory=list)
    busy_days: list[BusyDay] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# =============================================================================
# TOP BORROWERS
# =============================================================================


class TopBorrowerRow(ReportModel):
    borrower_id: str
    full_name: str
    student_id: str | None = None
    borrows: int
    active_loans: int
    overdue_loans: int
    share: float = Field(..., description="Fraction of all borrows in the window")


class TopBorrowersTotals(ReportModel):
    total_borrows: int = 0
    borrowers: int = 0
    active_loans: int = 0
    overdue_loans: int = 0


class TopBorrowersReport(ReportModel):
    lookback_days: int
    since: datetime
    items: list[TopBorrowerRow] = Field(default_factory=list)
    totals: TopBorrowersTotals = Field(default_factory=TopBorrowersTotals)


# =============================================================================
# GENRE TRENDS
# =============================================================================


class GenreTrendRow(ReportModel):
    topic: str
    borrows: int = Field(..., description="Borrows in the current window")
    previous_borrows: int = Field(..., description="Borrows in the prior window")
    share: float = Field(..., description="Fraction of current-window borrows")
    growth: float = Field(
        ...,
        description="Percent change vs. the prior window; 100.0 for new topics",
    )
    is_new: bool = Field(..., description="True when the prior window had no borrows")


class GenreTrendsTotals(ReportModel):
    current_borrows: int = 0
    previous_borrows: int = 0
    topics: int = 0


class GenreTrendsReport(ReportModel):
    lookback_days: int
    since: datetime
    previous_since: datetime
    items: list[GenreTrendRow] = Field(default_factory=list)
    totals: GenreTrendsTotals = Field(default_factory=GenreTrendsTotals)


# =============================================================================
# UNDERUTILIZED BOOKS
# =============================================================================

NEVER = "Never"
NEVER_BORROWED = "Never borrowed"


class UnderutilizedRow(ReportModel):
    book_id: str
    title: str
    author: str
    topic: str
    total_copies: int
    available_copies: int
    utilization: float = Field(..., description="Fraction of copies currently checked out")
    borrows: int = Field(..., description="Borrows in the lookback window")
    last_borrowed_at: datetime | None = None
    last_returned_at: datetime | None = None
    days_idle: int | Literal["Never"]
    status: str


class UnderutilizedTotals(ReportModel):
    total_underutilized: int = 0
    never_borrowed: int = 0
    books_considered: int = 0


class UnderutilizedReport(ReportModel):
    lookback_days: int
    max_borrows: int
    items: list[UnderutilizedRow] = Field(default_factory=list)
    totals: UnderutilizedTotals = Field(default_factory=UnderutilizedTotals)


# =============================================================================
# FINES
# =============================================================================


class FineRow(ReportModel):
    loan_id: str
    borrower_id: str
    borrower: str
    student_id: str | None = None
    book_id: str
    title: str
    due_at: datetime
    days_overdue: str = Field(..., description="Whole days overdue, as display text")
    fine: str = Field(..., description="Fine amount with two decimals, as display text")


class FineTotals(ReportModel):
    outstanding: float = 0.0
    overdue_loans: int = 0
    average_fine: float = 0.0
    average_days_overdue: float = 0.0


class FinesReport(ReportModel):
    fine_per_day: float
    items: list[FineRow] = Field(default_factory=list)
    totals: FineTotals = Field(default_factory=FineTotals)


# =============================================================================
# TOP BOOKS / OVERDUE / CIRCULATION
# =============================================================================


class TopBookRow(ReportModel):
    book_id: str
    title: str
    author: str
    topic: str
    borrows: int


class TopBooksTotals(ReportModel):
    total_borrows: int = 0
    books: int = 0


class TopBooksReport(ReportModel):
    lookback_days: int | None = None
    items: list[TopBookRow] = Field(default_factory=list)
    totals: TopBooksTotals = Field(default_factory=TopBooksTotals)


class OverdueRow(ReportModel):
    loan_id: str
    borrower: str
    title: str
    borrowed_at: datetime | None = None
    due_at: datetime
    days_overdue: int
    status: str


class OverdueTotals(ReportModel):
    overdue_loans: int = 0


class OverdueReport(ReportModel):
    lookback_days: int | None = None
    items: list[OverdueRow] = Field(default_factory=list)
    totals: OverdueTotals = Field(default_factory=OverdueTotals)


class CirculationSnapshot(ReportModel):
    """Point-in-time counts for the front-desk tracker."""

    generated_at: datetime
    visits_today: int = 0
    exits_today: int = 0
    visitors_inside: int = 0
    active_loans: int = 0
    overdue_loans: int = 0


# =============================================================================
# LOAN ACTIVITY
# =============================================================================


class LoanActivityRow(ReportModel):
    """One recent loan for the front-desk activity log."""

    loan_id: str
    status: str = Field(..., description="Borrowed, Returned or Overdue")
    borrower: str
    student_id: str | None = None
    material: str
    borrowed_at: datetime
    due_at: datetime | None = None
    returned_at: datetime | None = None


class LoanActivityTotals(ReportModel):
    loans: int = 0
    borrowed: int = 0
    returned: int = 0
    overdue: int = 0


class LoanActivityReport(ReportModel):
    lookback_days: int
    since: datetime
    items: list[LoanActivityRow] = Field(default_factory=list)
    totals: LoanActivityTotals = Field(default_factory=LoanActivityTotals)
