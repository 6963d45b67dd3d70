"""
Demo data generation for local development.

Fills the database with users, books, loans and gate visits so every report
has something to show. Generation is deterministic for a given ``seed`` and
``now``:

- a slice of the catalog is never borrowed (underutilized report)
- some loans are past due and unreturned (fines and overdue reports)
- visits cluster around late morning and early afternoon (staffing report)
"""

import logging
import random
from datetime import UTC, datetime, timedelta

from faker import Faker

from ..analytics.dates import utc_now
from ..models.validators import normalize_email
from .schema import Book, Loan, User, Visit
from .session import DatabaseManager

logger = logging.getLogger(__name__)

LOAN_PERIOD = timedelta(days=14)

GENRES = [
    "CITE",
    "CAHS",
    "CELA",
    "CCJE",
    "CBA",
    "Fiction",
    "Science",
    "History",
    "Mathematics",
    "Philosophy",
]

DEPARTMENTS = ["CITE", "CAHS", "CELA", "CCJE", "CBA", "CEA"]

BRANCHES = ["Main", "Main", "Main", "Annex"]

# Entry hours weighted toward the mid-day rush
VISIT_HOURS = list(range(7, 21))
VISIT_HOUR_WEIGHTS = [1, 3, 6, 8, 9, 7, 8, 9, 6, 4, 3, 2, 1, 1]


def _naive(moment: datetime) -> datetime:
    return moment.astimezone(UTC).replace(tzinfo=None)


def generate_users(fake: Faker, rng: random.Random, count: int = 60) -> list[User]:
    users = []
    for i in range(count):
        first, last = fake.first_name(), fake.last_name()
        users.append(
            User(
                id=f"user_{i + 1:05d}",
                student_id=f"{rng.randint(0, 99):02d}-{rng.randint(0, 9999):04d}-{i + 1:06d}",
                email=normalize_email(f"{first}.{last}.{i + 1}@example.edu".replace(" ", "")),
                full_name=f"{first} {last}",
                department=rng.choice(DEPARTMENTS),
                barcode=f"LIB{i + 1:07d}",
                role=rng.choices(["student", "faculty", "staff"], weights=[85, 10, 5])[0],
            )
        )
    return users


def generate_books(fake: Faker, rng: random.Random, count: int = 200) -> list[Book]:
    books = []
    for i in range(count):
        total = rng.randint(1, 5)
        books.append(
            Book(
                id=f"book_{i + 1:05d}",
                title=fake.catch_phrase(),
                author=fake.name(),
                isbn=fake.isbn13(separator=""),
                genre=rng.choice(GENRES) if rng.random() > 0.05 else None,
                total_copies=total,
                available_copies=total,
            )
        )
    return books


def generate_loans(
    users: list[User],
    books: list[Book],
    rng: random.Random,
    *,
    now: datetime,
    count: int = 600,
    history_days: int = 120,
) -> list[Loan]:
    """
    Generate loan history ending at ``now``.

    The last fifth of ``books`` is never borrowed. Unreturned loans never
    exceed a book's copies, and ``available_copies`` is updated to match.
    """
    if not users or not books:
        return []

    lendable = books[: max(1, len(books) * 4 // 5)]
    out: dict[str, int] = {}
    loans = []

    for i in range(count):
        book = rng.choice(lendable)
        borrowed_at = now - timedelta(days=rng.uniform(0, history_days))
        due_at = borrowed_at + LOAN_PERIOD

        if due_at < now:
            keep_out = rng.random() < 0.15
        else:
            keep_out = rng.random() < 0.6

        returned_at = None
        if keep_out and out.get(book.id, 0) < book.total_copies:
            out[book.id] = out.get(book.id, 0) + 1
        else:
            returned_at = min(now, borrowed_at + timedelta(days=rng.uniform(1, 20)))

        loans.append(
            Loan(
                id=f"loan_{i + 1:06d}",
                user_id=rng.choice(users).id,
                book_id=book.id,
                borrowed_at=_naive(borrowed_at),
                due_at=_naive(due_at),
                returned_at=_naive(returned_at) if returned_at else None,
            )
        )

    for book in books:
        book.available_copies = book.total_copies - out.get(book.id, 0)

    return loans


def generate_visits(
    users: list[User],
    rng: random.Random,
    *,
    now: datetime,
    count: int = 2000,
    history_days: int = 60,
) -> list[Visit]:
    """Generate gate visits; most carry a user reference, some only a student ID or badge."""
    visits = []
    for _ in range(count):
        day = now - timedelta(days=rng.randint(0, history_days))
        entered_at = day.replace(
            hour=rng.choices(VISIT_HOURS, weights=VISIT_HOUR_WEIGHTS)[0],
            minute=rng.randint(0, 59),
            second=0,
            microsecond=0,
        )
        if entered_at > now:
            entered_at -= timedelta(days=1)
        exited_at = entered_at + timedelta(minutes=rng.randint(15, 180))
        if exited_at > now:
            exited_at = None

        user = rng.choice(users) if users else None
        kind = rng.random()
        visit = Visit(
            branch=rng.choice(BRANCHES),
            entered_at=_naive(entered_at),
            exited_at=_naive(exited_at) if exited_at else None,
        )
        if user is not None and kind < 0.7:
            visit.user_id = user.id
        elif user is not None and kind < 0.9:
            visit.student_id = user.student_id
        else:
            visit.barcode = f"GUEST{rng.randint(1, 9999):04d}"
        visits.append(visit)
    return visits


def seed_database(
    database_url: str | None = None,
    *,
    now: datetime | None = None,
    seed: int = 42,
    users: int = 60,
    books: int = 200,
    loans: int = 600,
    visits: int = 2000,
) -> dict[str, int]:
    """
    Recreate the schema and fill it with demo data.

    Returns:
        Row counts per table
    """
    now = now or utc_now()
    fake = Faker()
    fake.seed_instance(seed)
    rng = random.Random(seed)

    manager = DatabaseManager(database_url)
    try:
        manager.init_database(drop_existing=True)

        user_rows = generate_users(fake, rng, users)
        book_rows = generate_books(fake, rng, books)
        loan_rows = generate_loans(user_rows, book_rows, rng, now=now, count=loans)
        visit_rows = generate_visits(user_rows, rng, now=now, count=visits)

        with manager.session_scope() as session:
            session.add_all(user_rows)
            session.add_all(book_rows)
            session.flush()
            session.add_all(loan_rows)
            session.add_all(visit_rows)
    finally:
        manager.close()

    counts = {
        "users": len(user_rows),
        "books": len(book_rows),
        "loans": len(loan_rows),
        "visits": len(visit_rows),
    }
    logger.info("Seeded database: %s", counts)
    return counts
