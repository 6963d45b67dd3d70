"""Test configuration and fixtures for Library Insights MCP Server.

Every test runs with:
1. A fixed reference instant (``now``) so report windows are deterministic
2. A clean ``LIBRARY_INSIGHTS_*`` environment and a fresh config singleton
3. A temporary working directory, so default paths never touch the repo
4. Logfire configured locally, so spans are never exported

Record factories build ``LoanRecord``/``BookRecord``/``BorrowerRecord``/
``VisitRecord`` objects relative to ``now``.
"""

import itertools
import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import logfire
import pytest

from library_insights_mcp.config import reset_config
from library_insights_mcp.database import DatabaseManager, reset_db_manager
from library_insights_mcp.models import (
    BookRecord,
    BorrowerRecord,
    LoanRecord,
    UserVisitor,
    VisitRecord,
)
from library_insights_mcp.resources import reset_response_cache

# Friday 2024-03-15 12:00 UTC
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


# === Isolation ===


@pytest.fixture(scope="session", autouse=True)
def local_tracing():
    """Keep report spans in-process."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Strip LIBRARY_INSIGHTS_* variables and reset every singleton."""
    for key in list(os.environ):
        if key.startswith("LIBRARY_INSIGHTS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)

    reset_config()
    reset_db_manager()
    reset_response_cache()

    yield

    reset_response_cache()
    reset_db_manager()
    reset_config()


@pytest.fixture
def now() -> datetime:
    return NOW


# === Record Factories ===


@pytest.fixture
def make_loan():
    """Build loans with times given in days relative to ``NOW``.

    Negative ``due_in_days`` puts the due date in the past.
    """
    ids = itertools.count(1)

    def factory(
        *,
        borrower_id: str = "user_00001",
        book_id: str = "book_00001",
        borrowed_days_ago: float = 5,
        due_in_days: float = 9,
        returned_days_ago: float | None = None,
    ) -> LoanRecord:
        return LoanRecord(
            id=f"loan_{next(ids):06d}",
            borrower_id=borrower_id,
            book_id=book_id,
            borrowed_at=NOW - timedelta(days=borrowed_days_ago),
            due_at=NOW + timedelta(days=due_in_days),
            returned_at=(
                NOW - timedelta(days=returned_days_ago) if returned_days_ago is not None else None
            ),
        )

    return factory


@pytest.fixture
def make_book():
    def factory(
        book_id: str,
        title: str,
        *,
        genre: str | None = "Fiction",
        author: str = "Jose Rizal",
        total_copies: int = 1,
        available_copies: int | None = None,
    ) -> BookRecord:
        return BookRecord(
            id=book_id,
            title=title,
            author=author,
            genre=genre,
            total_copies=total_copies,
            available_copies=total_copies if available_copies is None else available_copies,
        )

    return factory


@pytest.fixture
def make_borrower():
    def factory(borrower_id: str, full_name: str, student_id: str | None = None) -> BorrowerRecord:
        return BorrowerRecord(id=borrower_id, full_name=full_name, student_id=student_id)

    return factory


@pytest.fixture
def make_visit():
    def factory(
        entered_at: datetime,
        *,
        branch: str = "Main",
        exited_at: datetime | None = None,
        user_id: str = "user_00001",
    ) -> VisitRecord:
        return VisitRecord(
            visitor=UserVisitor(user_id=user_id),
            branch=branch,
            entered_at=entered_at,
            exited_at=exited_at,
        )

    return factory


# === Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """A database manager over a fresh temporary SQLite file."""
    manager = DatabaseManager(test_database_url)
    manager.init_database()
    yield manager
    manager.close()
