"""Tests for the database schema and snapshot loading.

Uses a temporary SQLite database per test. Rows are written through the ORM
the same way the circulation desk application would, then read back as
domain records.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from library_insights_mcp.database import (
    Book,
    LibrarySnapshotRepository,
    Loan,
    SnapshotError,
    User,
    Visit,
    get_db_manager,
    session_scope,
)
from library_insights_mcp.models import BadgeVisitor, StudentVisitor, UserVisitor

# Naive UTC, as stored
BASE = datetime(2024, 3, 15, 12, 0)


def _user(user_id: str, name: str, student_id: str, **kwargs) -> User:
    return User(
        id=user_id,
        student_id=student_id,
        email=f"{user_id}@example.edu",
        full_name=name,
        **kwargs,
    )


@pytest.fixture
def populated_db(db_manager):
    """A small library: two users, three books, four loans, four visits."""
    with db_manager.session_scope() as session:
        session.add_all(
            [
                _user("user_00001", "Juan Dela Cruz", "03-2024-000001"),
                _user("user_00002", "Maria Clara", "03-2024-000002", role="Librarian Staff"),
                Book(id="book_00001", title="Noli Me Tangere", author="Jose Rizal", genre="Fiction",
                     total_copies=2, available_copies=1),
                Book(id="book_00002", title="Cosmos", author="Carl Sagan", genre=None),
                Book(id="book_00003", title="   ", author="Nobody"),
            ]
        )
        session.flush()
        session.add_all(
            [
                Loan(id="loan_000001", user_id="user_00001", book_id="book_00001",
                     borrowed_at=BASE - timedelta(days=40), due_at=BASE - timedelta(days=26),
                     returned_at=BASE - timedelta(days=30)),
                Loan(id="loan_000002", user_id="user_00001", book_id="book_00001",
                     borrowed_at=BASE - timedelta(days=10), due_at=BASE + timedelta(days=4)),
                Loan(id="loan_000003", user_id="user_00002", book_id="book_00002",
                     borrowed_at=BASE - timedelta(days=20), due_at=BASE - timedelta(days=6)),
                Loan(id="loan_000004", user_id="user_00002", book_id="book_00002",
                     borrowed_at=BASE - timedelta(days=5), due_at=BASE + timedelta(days=9),
                     returned_at=BASE - timedelta(days=1)),
                Visit(user_id="user_00001", branch="Main", entered_at=BASE - timedelta(hours=3),
                      exited_at=BASE - timedelta(hours=2)),
                Visit(student_id="03-2024-000099", branch="  ", entered_at=BASE - timedelta(hours=1)),
                Visit(barcode="GUEST0001", branch="Annex", entered_at=BASE - timedelta(days=3)),
                Visit(user_id="user_00002", branch="Main", entered_at=BASE - timedelta(days=10)),
            ]
        )
    return db_manager


class TestSchema:
    """Test table constraints."""

    def test_role_is_normalized(self, populated_db):
        with populated_db.session_scope() as session:
            assert session.get(User, "user_00002").role == "librarian_staff"
            assert session.get(User, "user_00001").role == "student"

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown role"):
            _user("user_00003", "Basilio", "03-2024-000003", role="wizard")

    def test_available_copies_constraint(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                session.add(Book(id="book_bad", title="Too Many", author="X",
                                 total_copies=1, available_copies=3))

    def test_visit_requires_an_identifier(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                session.add(Visit(branch="Main", entered_at=BASE))

    def test_loan_foreign_keys_enforced(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                session.add(Loan(id="loan_x", user_id="nobody", book_id="nothing",
                                 borrowed_at=BASE, due_at=BASE + timedelta(days=14)))


class TestLibrarySnapshotRepository:
    """Test snapshot loading into domain records."""

    def test_load_loans(self, populated_db):
        with populated_db.session_scope() as session:
            loans = LibrarySnapshotRepository(session).load_loans()

        assert [loan.id for loan in loans] == [
            "loan_000001",
            "loan_000003",
            "loan_000002",
            "loan_000004",
        ]
        first = loans[0]
        assert first.borrower_id == "user_00001"
        assert first.borrowed_at == datetime(2024, 2, 4, 12, 0, tzinfo=UTC)
        assert first.returned_at.tzinfo == UTC

    def test_load_loans_since(self, populated_db):
        with populated_db.session_scope() as session:
            since = datetime(2024, 3, 15, 12, 0, tzinfo=UTC) - timedelta(days=15)
            loans = LibrarySnapshotRepository(session).load_loans(since=since)
        assert [loan.id for loan in loans] == ["loan_000002", "loan_000004"]

    def test_load_active_loans(self, populated_db):
        with populated_db.session_scope() as session:
            loans = LibrarySnapshotRepository(session).load_loans(active_only=True)
        assert {loan.id for loan in loans} == {"loan_000002", "loan_000003"}
        assert all(loan.returned_at is None for loan in loans)

    def test_load_books_skips_invalid_rows(self, populated_db):
        """A book with a blank title cannot become a record."""
        with populated_db.session_scope() as session:
            books = LibrarySnapshotRepository(session).load_books()
        assert [book.id for book in books] == ["book_00002", "book_00001"]
        assert books[0].genre is None
        assert books[1].available_copies == 1

    def test_load_borrowers(self, populated_db):
        with populated_db.session_scope() as session:
            borrowers = LibrarySnapshotRepository(session).load_borrowers()
        assert [b.full_name for b in borrowers] == ["Juan Dela Cruz", "Maria Clara"]
        assert borrowers[0].student_id == "03-2024-000001"

    def test_load_borrowers_skips_malformed_rows(self, populated_db):
        with populated_db.session_scope() as session:
            session.add(_user("user_00003", "Basilio", "2024-77"))
        with populated_db.session_scope() as session:
            borrowers = LibrarySnapshotRepository(session).load_borrowers()
        assert [b.id for b in borrowers] == ["user_00001", "user_00002"]

    def test_load_visits_resolves_visitors(self, populated_db):
        with populated_db.session_scope() as session:
            visits = LibrarySnapshotRepository(session, default_branch="Main").load_visits()

        assert [type(v.visitor) for v in visits] == [
            UserVisitor,
            BadgeVisitor,
            UserVisitor,
            StudentVisitor,
        ]
        assert visits[-1].branch == "Main"
        assert visits[1].branch == "Annex"
        assert visits[2].exited_at is not None

    def test_load_visits_since(self, populated_db):
        with populated_db.session_scope() as session:
            since = datetime(2024, 3, 15, tzinfo=UTC)
            visits = LibrarySnapshotRepository(session).load_visits(since=since)
        assert len(visits) == 2

    def test_blank_branch_uses_repository_default(self, populated_db):
        with populated_db.session_scope() as session:
            visits = LibrarySnapshotRepository(session, default_branch="Central").load_visits()
        assert visits[-1].branch == "Central"

    def test_query_failure_raises_snapshot_error(self, populated_db):
        """Database errors surface as SnapshotError."""
        with populated_db.session_scope() as session:
            session.execute(text("DROP TABLE visits"))
            with pytest.raises(SnapshotError, match="Failed to load visits"):
                LibrarySnapshotRepository(session).load_visits()


class TestSessionHelpers:
    def test_verify_connection(self, db_manager):
        assert db_manager.verify_connection() is True

    def test_global_manager_uses_configured_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LIBRARY_INSIGHTS_DATABASE_PATH", str(tmp_path / "global.db"))
        manager = get_db_manager()
        assert manager.database_url.endswith("global.db")
        assert get_db_manager() is manager

        manager.init_database()
        with session_scope() as session:
            assert LibrarySnapshotRepository(session).load_loans() == []

    def test_session_scope_rolls_back_on_error(self, db_manager):
        with pytest.raises(RuntimeError):
            with db_manager.session_scope() as session:
                session.add(Book(id="book_tmp", title="Temporary", author="X"))
                session.flush()
                raise RuntimeError("abort")

        with db_manager.session_scope() as session:
            assert session.get(Book, "book_tmp") is None
