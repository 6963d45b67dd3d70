"""Report builders - borrower rankings, genre trends, idle books, fines and loan activity.

Each builder takes record snapshots (``LoanRecord``/``BookRecord``/
``BorrowerRecord`` objects, ORM rows, or plain mappings) plus explicit
configuration and returns a payload model with ``items`` and ``totals``.

Builders never raise for bad data. A loan that points at a deleted book or
borrower is skipped, an unreadable timestamp is treated as absent, and empty
input gives an empty report with zeroed totals.
"""

import logging
import math
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, tzinfo
from typing import Any, TypeVar

from ..models.reports import (
    NEVER,
    NEVER_BORROWED,
    CirculationSnapshot,
    FineRow,
    FinesReport,
    FineTotals,
    GenreTrendRow,
    GenreTrendsReport,
    GenreTrendsTotals,
    LoanActivityReport,
    LoanActivityRow,
    LoanActivityTotals,
    LoanStatusKey,
    OverdueReport,
    OverdueRow,
    OverdueTotals,
    TopBookRow,
    TopBooksReport,
    TopBooksTotals,
    TopBorrowerRow,
    TopBorrowersReport,
    TopBorrowersTotals,
    UnderutilizedReport,
    UnderutilizedRow,
    UnderutilizedTotals,
)
from .dates import coerce_date, utc_now, whole_days_between
from .fields import read_field, read_id
from .loan_status import (
    days_overdue,
    loan_borrowed_at,
    loan_due_at,
    loan_returned_at,
    resolve_loan_status_meta,
)
from .usage import clamp_lookback, lookback_window

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

# Growth reported for a topic with borrows now and none in the prior window
NEW_TOPIC_GROWTH = 100.0

DEFAULT_FINE_PER_DAY = 1.00

# Status labels in the loan activity log
ACTIVITY_BORROWED = "Borrowed"
ACTIVITY_RETURNED = "Returned"
ACTIVITY_OVERDUE = "Overdue"

UNKNOWN_BORROWER = "Unknown Borrower"
UNKNOWN_MATERIAL = "Unknown Material"

T = TypeVar("T")


# =============================================================================
# SHARED HELPERS
# =============================================================================


def _record_id(record: Any) -> str | None:
    return read_id(record, "id", "_id")


def _loan_book_id(loan: Any) -> str | None:
    return read_id(loan, "book_id", "bookId")


def _loan_borrower_id(loan: Any) -> str | None:
    return read_id(loan, "borrower_id", "borrowerId", "user_id", "userId")


def _index(records: Iterable[Any] | None) -> dict[str, Any]:
    indexed = {}
    for record in records or ():
        record_id = _record_id(record)
        if record_id is not None:
            indexed[record_id] = record
    return indexed


def _text(record: Any, *names: str, default: str = "") -> str:
    value = read_field(record, *names)
    if value is None:
        return default
    return str(value).strip() or default


def _topic(book: Any) -> str:
    return _text(book, "genre", "topic", default=UNCATEGORIZED)


def _borrower_name(borrower: Any, fallback: str) -> str:
    return (
        _text(borrower, "full_name", "fullName")
        or _text(borrower, "student_id", "studentId")
        or fallback
    )


def _student_id(borrower: Any) -> str | None:
    return _text(borrower, "student_id", "studentId") or None


def _share(part: int, whole: int) -> float:
    return round(part / whole, 4) if whole else 0.0


def _count(record: Any, *names: str) -> int:
    try:
        return max(0, int(read_field(record, *names, default=0) or 0))
    except (TypeError, ValueError):
        return 0


def _apply_limit(rows: Sequence[T], limit: int | None) -> list[T]:
    if limit is None or limit <= 0:
        return list(rows)
    return list(rows[:limit])


def _reference(now: Any) -> datetime:
    return coerce_date(now) or utc_now()


def _plural_days(days: int) -> str:
    return "1 day" if days == 1 else f"{days} days"


# =============================================================================
# TOP BORROWERS
# =============================================================================


def build_top_borrowers(
    loans: Iterable[Any] | None,
    borrowers: Iterable[Any] | None,
    *,
    now: Any,
    lookback_days: int,
    limit: int | None = None,
) -> TopBorrowersReport:
    """Rank borrowers by loans taken out within the lookback window.

    ``share`` is the borrower's borrows divided by every borrow in the
    window. Active and overdue counts are taken from the same in-window
    loans. Ordering: borrows desc, then full name asc.
    """
    since, until = lookback_window(now, lookback_days)
    people = _index(borrowers)

    grouped: dict[str, list[Any]] = defaultdict(list)
    total_borrows = 0
    for loan in loans or ():
        borrowed_at = loan_borrowed_at(loan)
        borrower_id = _loan_borrower_id(loan)
        if borrowed_at is None or borrower_id is None:
            continue
        if not since <= borrowed_at <= until:
            continue
        total_borrows += 1
        grouped[borrower_id].append(loan)

    rows = []
    for borrower_id, borrower_loans in grouped.items():
        person = people.get(borrower_id)
        if person is None:
            logger.debug("Top borrowers: skipping unknown borrower %s", borrower_id)
            continue
        statuses = [resolve_loan_status_meta(loan, now=until).key for loan in borrower_loans]
        rows.append(
            TopBorrowerRow(
                borrower_id=borrower_id,
                full_name=_borrower_name(person, borrower_id),
                student_id=_student_id(person),
                borrows=len(borrower_loans),
                active_loans=sum(1 for key in statuses if key != LoanStatusKey.RETURNED),
                overdue_loans=sum(1 for key in statuses if key == LoanStatusKey.OVERDUE),
                share=_share(len(borrower_loans), total_borrows),
            )
        )

    rows.sort(key=lambda row: (-row.borrows, row.full_name.casefold(), row.borrower_id))

    return TopBorrowersReport(
        lookback_days=clamp_lookback(lookback_days),
        since=since,
        items=_apply_limit(rows, limit),
        totals=TopBorrowersTotals(
            total_borrows=total_borrows,
            borrowers=len(rows),
            active_loans=sum(row.active_loans for row in rows),
            overdue_loans=sum(row.overdue_loans for row in rows),
        ),
    )


# =============================================================================
# GENRE TRENDS
# =============================================================================


def growth_percent(current: int, previous: int) -> float:
    """Percent change from ``previous`` to ``current``, one decimal.

    A topic with no prior borrows reports :data:`NEW_TOPIC_GROWTH` when it
    has current borrows, and 0.0 when it has none.
    """
    if previous <= 0:
        return NEW_TOPIC_GROWTH if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def build_genre_trends(
    loans: Iterable[Any] | None,
    books: Iterable[Any] | None,
    *,
    now: Any,
    lookback_days: int,
    limit: int | None = None,
) -> GenreTrendsReport:
    """Compare borrows per topic between the current and the prior window.

    The current window is ``[now - d, now]`` and the prior window is the
    ``d`` days before it. Topics borrowed in either window are listed;
    ordering is borrows desc, growth desc, topic asc.
    """
    since, until = lookback_window(now, lookback_days)
    previous_since = since - (until - since)
    catalog = _index(books)

    current: Counter[str] = Counter()
    previous: Counter[str] = Counter()
    for loan in loans or ():
        borrowed_at = loan_borrowed_at(loan)
        if borrowed_at is None:
            continue
        if since <= borrowed_at <= until:
            bucket = current
        elif previous_since <= borrowed_at < since:
            bucket = previous
        else:
            continue
        book = catalog.get(_loan_book_id(loan))
        if book is None:
            logger.debug("Genre trends: skipping loan for unknown book %s", _loan_book_id(loan))
            continue
        bucket[_topic(book)] += 1

    current_total = sum(current.values())
    rows = [
        GenreTrendRow(
            topic=topic,
            borrows=current[topic],
            previous_borrows=previous[topic],
            share=_share(current[topic], current_total),
            growth=growth_percent(current[topic], previous[topic]),
            is_new=previous[topic] == 0 and current[topic] > 0,
        )
        for topic in set(current) | set(previous)
    ]
    rows.sort(key=lambda row: (-row.borrows, -row.growth, row.topic.casefold()))

    return GenreTrendsReport(
        lookback_days=clamp_lookback(lookback_days),
        since=since,
        previous_since=previous_since,
        items=_apply_limit(rows, limit),
        totals=GenreTrendsTotals(
            current_borrows=current_total,
            previous_borrows=sum(previous.values()),
            topics=len(rows),
        ),
    )


# =============================================================================
# UNDERUTILIZED BOOKS
# =============================================================================


def _book_activity(
    loans: Iterable[Any] | None, since: datetime, until: datetime
) -> dict[str, dict[str, Any]]:
    activity: dict[str, dict[str, Any]] = {}
    for loan in loans or ():
        book_id = _loan_book_id(loan)
        if book_id is None:
            continue
        stats = activity.setdefault(
            book_id,
            {"loans": 0, "borrows": 0, "last_borrowed": None, "last_returned": None, "open_since": None},
        )
        stats["loans"] += 1

        borrowed_at = loan_borrowed_at(loan)
        returned_at = loan_returned_at(loan)
        if borrowed_at is not None:
            if since <= borrowed_at <= until:
                stats["borrows"] += 1
            stats["last_borrowed"] = max(filter(None, (stats["last_borrowed"], borrowed_at)))
            if returned_at is None:
                stats["open_since"] = max(filter(None, (stats["open_since"], borrowed_at)))
        if returned_at is not None:
            stats["last_returned"] = max(filter(None, (stats["last_returned"], returned_at)))
    return activity


def _idle_status(stats: dict[str, Any] | None, until: datetime) -> tuple[int | str, str]:
    if not stats or stats["loans"] == 0:
        return NEVER, NEVER_BORROWED
    if stats["open_since"] is not None:
        days = max(0, whole_days_between(stats["open_since"], until))
        return days, f"On loan for {_plural_days(days)}"
    if stats["last_returned"] is not None:
        days = max(0, whole_days_between(stats["last_returned"], until))
        return days, f"Idle for {_plural_days(days)}"
    if stats["last_borrowed"] is not None:
        days = max(0, whole_days_between(stats["last_borrowed"], until))
        return days, f"Idle for {_plural_days(days)}"
    return 0, "Loan dates unavailable"


def build_underutilized_books(
    loans: Iterable[Any] | None,
    books: Iterable[Any] | None,
    *,
    now: Any,
    lookback_days: int,
    max_borrows: int = 0,
    limit: int | None = None,
) -> UnderutilizedReport:
    """List books borrowed at most ``max_borrows`` times in the window.

    Books with no loans at all are reported with ``status="Never borrowed"``
    and ``days_idle="Never"`` and come first; the rest follow by days idle
    (since the last return, or since the current loan started) descending.
    """
    since, until = lookback_window(now, lookback_days)
    threshold = max(0, max_borrows)
    activity = _book_activity(loans, since, until)

    rows = []
    considered = 0
    for book in books or ():
        book_id = _record_id(book)
        if book_id is None:
            continue
        considered += 1
        stats = activity.get(book_id)
        borrows = stats["borrows"] if stats else 0
        if borrows > threshold:
            continue

        total_copies = _count(book, "total_copies", "totalCopies")
        available_copies = min(_count(book, "available_copies", "availableCopies"), total_copies)
        days_idle, status = _idle_status(stats, until)
        rows.append(
            UnderutilizedRow(
                book_id=book_id,
                title=_text(book, "title", default=book_id),
                author=_text(book, "author", default="Unknown"),
                topic=_topic(book),
                total_copies=total_copies,
                available_copies=available_copies,
                utilization=_share(total_copies - available_copies, total_copies),
                borrows=borrows,
                last_borrowed_at=stats["last_borrowed"] if stats else None,
                last_returned_at=stats["last_returned"] if stats else None,
                days_idle=days_idle,
                status=status,
            )
        )

    def sort_key(row: UnderutilizedRow) -> tuple[int, int, str]:
        if row.days_idle == NEVER:
            return (0, 0, row.title.casefold())
        return (1, -row.days_idle, row.title.casefold())

    rows.sort(key=sort_key)

    return UnderutilizedReport(
        lookback_days=clamp_lookback(lookback_days),
        max_borrows=threshold,
        items=_apply_limit(rows, limit),
        totals=UnderutilizedTotals(
            total_underutilized=len(rows),
            never_borrowed=sum(1 for row in rows if row.days_idle == NEVER),
            books_considered=considered,
        ),
    )


# =============================================================================
# FINES
# =============================================================================


def clamp_fine_rate(fine_per_day: Any) -> float:
    """Negative or non-numeric rates charge nothing."""
    try:
        rate = float(fine_per_day)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(rate) or rate < 0:
        return 0.0
    return rate


def build_fines_report(
    loans: Iterable[Any] | None,
    books: Iterable[Any] | None,
    borrowers: Iterable[Any] | None,
    *,
    now: Any,
    fine_per_day: Any = DEFAULT_FINE_PER_DAY,
    limit: int | None = None,
) -> FinesReport:
    """Compute fines for every overdue, unreturned loan.

    ``days_overdue`` is the floored number of whole days past due (at least
    1) and ``fine`` is ``days_overdue * fine_per_day``; both are rendered as
    display strings. Totals are numeric, rounded to two decimals, and cover
    every row even when ``limit`` trims ``items``.
    """
    reference = _reference(now)
    rate = clamp_fine_rate(fine_per_day)
    catalog = _index(books)
    people = _index(borrowers)

    charged: list[tuple[float, int, datetime, FineRow]] = []
    for loan in loans or ():
        if resolve_loan_status_meta(loan, now=reference).key != LoanStatusKey.OVERDUE:
            continue
        borrower_id = _loan_borrower_id(loan)
        book_id = _loan_book_id(loan)
        person = people.get(borrower_id)
        book = catalog.get(book_id)
        if person is None or book is None:
            logger.debug("Fines: skipping loan %s with missing borrower or book", _record_id(loan))
            continue

        days = days_overdue(loan, now=reference)
        amount = round(days * rate, 2)
        due_at = loan_due_at(loan)
        charged.append(
            (
                amount,
                days,
                due_at,
                FineRow(
                    loan_id=_record_id(loan) or "",
                    borrower_id=borrower_id,
                    borrower=_borrower_name(person, borrower_id),
                    student_id=_student_id(person),
                    book_id=book_id,
                    title=_text(book, "title", default=book_id),
                    due_at=due_at,
                    days_overdue=str(days),
                    fine=f"{amount:.2f}",
                ),
            )
        )

    charged.sort(key=lambda entry: (-entry[0], entry[2], entry[3].loan_id))

    count = len(charged)
    outstanding = round(sum(entry[0] for entry in charged), 2)
    total_days = sum(entry[1] for entry in charged)

    return FinesReport(
        fine_per_day=rate,
        items=_apply_limit([entry[3] for entry in charged], limit),
        totals=FineTotals(
            outstanding=outstanding,
            overdue_loans=count,
            average_fine=round(outstanding / count, 2) if count else 0.0,
            average_days_overdue=round(total_days / count, 2) if count else 0.0,
        ),
    )


# =============================================================================
# TOP BOOKS / OVERDUE / CIRCULATION
# =============================================================================


def build_top_books(
    loans: Iterable[Any] | None,
    books: Iterable[Any] | None,
    *,
    now: Any,
    lookback_days: int | None = None,
    limit: int | None = 10,
) -> TopBooksReport:
    """Most borrowed books, all-time or within a lookback window."""
    windowed = lookback_days is not None and lookback_days > 0
    since, until = lookback_window(now, lookback_days if windowed else 1)
    catalog = _index(books)

    counts: Counter[str] = Counter()
    for loan in loans or ():
        if windowed:
            borrowed_at = loan_borrowed_at(loan)
            if borrowed_at is None or not since <= borrowed_at <= until:
                continue
        book_id = _loan_book_id(loan)
        if book_id in catalog:
            counts[book_id] += 1

    rows = [
        TopBookRow(
            book_id=book_id,
            title=_text(catalog[book_id], "title", default=book_id),
            author=_text(catalog[book_id], "author", default="Unknown"),
            topic=_topic(catalog[book_id]),
            borrows=borrows,
        )
        for book_id, borrows in counts.items()
    ]
    rows.sort(key=lambda row: (-row.borrows, row.title.casefold(), row.book_id))

    return TopBooksReport(
        lookback_days=lookback_days if windowed else None,
        items=_apply_limit(rows, limit),
        totals=TopBooksTotals(total_borrows=sum(counts.values()), books=len(rows)),
    )


def build_overdue_report(
    loans: Iterable[Any] | None,
    books: Iterable[Any] | None,
    borrowers: Iterable[Any] | None,
    *,
    now: Any,
    lookback_days: int | None = None,
    limit: int | None = 100,
) -> OverdueReport:
    """Overdue loans with borrower and title, oldest due date first.

    With a positive ``lookback_days`` only loans that fell due within that
    many days of ``now`` are listed.
    """
    reference = _reference(now)
    windowed = lookback_days is not None and lookback_days > 0
    due_since = lookback_window(reference, lookback_days)[0] if windowed else None
    catalog = _index(books)
    people = _index(borrowers)

    rows = []
    for loan in loans or ():
        meta = resolve_loan_status_meta(loan, now=reference)
        if meta.key != LoanStatusKey.OVERDUE:
            continue
        if due_since is not None and loan_due_at(loan) < due_since:
            continue
        borrower_id = _loan_borrower_id(loan)
        person = people.get(borrower_id)
        book = catalog.get(_loan_book_id(loan))
        if person is None or book is None:
            continue
        rows.append(
            OverdueRow(
                loan_id=_record_id(loan) or "",
                borrower=_borrower_name(person, borrower_id),
                title=_text(book, "title", default=UNKNOWN_MATERIAL),
                borrowed_at=loan_borrowed_at(loan),
                due_at=loan_due_at(loan),
                days_overdue=days_overdue(loan, now=reference),
                status=meta.label,
            )
        )
    rows.sort(key=lambda row: (row.due_at, row.loan_id))

    return OverdueReport(
        lookback_days=lookback_days if windowed else None,
        items=_apply_limit(rows, limit),
        totals=OverdueTotals(overdue_loans=len(rows)),
    )


# =============================================================================
# LOAN ACTIVITY
# =============================================================================


def _activity_label(key: LoanStatusKey | str, label: str) -> str:
    if key == LoanStatusKey.RETURNED:
        return ACTIVITY_RETURNED
    if key == LoanStatusKey.OVERDUE:
        return ACTIVITY_OVERDUE
    return label


def build_loan_activity(
    loans: Iterable[Any] | None,
    books: Iterable[Any] | None,
    borrowers: Iterable[Any] | None,
    *,
    now: Any,
    lookback_days: int,
    limit: int | None = 25,
) -> LoanActivityReport:
    """Loans borrowed within the lookback window, newest first.

    Each row is labelled Borrowed, Returned or Overdue. Loans whose borrower
    or book has been deleted stay in the log with placeholder names.
    """
    since, until = lookback_window(now, lookback_days)
    catalog = _index(books)
    people = _index(borrowers)

    rows = []
    for loan in loans or ():
        borrowed_at = loan_borrowed_at(loan)
        if borrowed_at is None or not since <= borrowed_at <= until:
            continue
        meta = resolve_loan_status_meta(loan, now=until, active_label=ACTIVITY_BORROWED)
        person = people.get(_loan_borrower_id(loan))
        book = catalog.get(_loan_book_id(loan))
        rows.append(
            LoanActivityRow(
                loan_id=_record_id(loan) or "",
                status=_activity_label(meta.key, meta.label),
                borrower=_borrower_name(person, UNKNOWN_BORROWER),
                student_id=_student_id(person),
                material=_text(book, "title", default=UNKNOWN_MATERIAL),
                borrowed_at=borrowed_at,
                due_at=loan_due_at(loan),
                returned_at=loan_returned_at(loan),
            )
        )
    rows.sort(key=lambda row: (-row.borrowed_at.timestamp(), row.loan_id))

    statuses = Counter(row.status for row in rows)
    return LoanActivityReport(
        lookback_days=clamp_lookback(lookback_days),
        since=since,
        items=_apply_limit(rows, limit),
        totals=LoanActivityTotals(
            loans=len(rows),
            borrowed=statuses[ACTIVITY_BORROWED],
            returned=statuses[ACTIVITY_RETURNED],
            overdue=statuses[ACTIVITY_OVERDUE],
        ),
    )

def build_circulation_snapshot(
    loans: Iterable[Any] | None,
    visits: Iterable[Any] | None,
    *,
    now: Any,
    tz: tzinfo = UTC,
) -> CirculationSnapshot:
    """Today's gate traffic and the current loan counts.

    "Today" starts at local midnight in ``tz``.
    """
    reference = _reference(now)
    local = reference.astimezone(tz)
    start_of_day = local.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)

    visits_today = exits_today = inside = 0
    for visit in visits or ():
        entered = coerce_date(read_field(visit, "entered_at", "enteredAt"))
        exited = coerce_date(read_field(visit, "exited_at", "exitedAt"))
        if entered is not None and start_of_day <= entered <= reference:
            visits_today += 1
        if exited is not None and start_of_day <= exited <= reference:
            exits_today += 1
        if entered is not None and entered <= reference and exited is None:
            inside += 1

    statuses = [resolve_loan_status_meta(loan, now=reference).key for loan in loans or ()]

    return CirculationSnapshot(
        generated_at=reference,
        visits_today=visits_today,
        exits_today=exits_today,
        visitors_inside=inside,
        active_loans=sum(1 for key in statuses if key != LoanStatusKey.RETURNED),
        overdue_loans=sum(1 for key in statuses if key == LoanStatusKey.OVERDUE),
    )
