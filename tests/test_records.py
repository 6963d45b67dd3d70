"""Tests for domain records and ingestion validators.

Records are what the analytics engine consumes, so these tests focus on:
1. Timestamp coercion at the record boundary
2. Copy-count and identifier constraints
3. Visitor resolution precedence
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from library_insights_mcp.models import (
    BadgeVisitor,
    BookRecord,
    BorrowerRecord,
    LoanRecord,
    StudentVisitor,
    UserVisitor,
    VisitRecord,
    resolve_visitor,
)
from library_insights_mcp.models.validators import (
    normalize_branch,
    normalize_email,
    normalize_student_id,
    normalize_text,
    normalize_user_role,
)


class TestLoanRecord:
    """Test loan record construction."""

    def test_timestamps_accept_every_coercible_shape(self):
        """ISO strings, epoch millis and wrapped dates all become aware UTC."""
        loan = LoanRecord(
            id="loan_000001",
            borrower_id="user_00001",
            book_id="book_00001",
            borrowed_at="2024-03-01T08:00:00Z",
            due_at=1_710_403_200_000,
            returned_at={"$date": "2024-03-10T09:30:00Z"},
        )
        assert loan.borrowed_at == datetime(2024, 3, 1, 8, 0, tzinfo=UTC)
        assert loan.due_at == datetime(2024, 3, 14, 8, 0, tzinfo=UTC)
        assert loan.returned_at == datetime(2024, 3, 10, 9, 30, tzinfo=UTC)
        assert loan.is_active is False

    def test_naive_database_times_are_utc(self):
        loan = LoanRecord(
            id="loan_000002",
            borrower_id="user_00001",
            book_id="book_00001",
            borrowed_at=datetime(2024, 3, 1, 8, 0),
            due_at=datetime(2024, 3, 15, 8, 0),
        )
        assert loan.borrowed_at.tzinfo == UTC
        assert loan.returned_at is None
        assert loan.is_active is True

    def test_blank_returned_at_means_active(self):
        loan = LoanRecord(
            id="loan_000003",
            borrower_id="user_00001",
            book_id="book_00001",
            borrowed_at="2024-03-01",
            due_at="2024-03-15",
            returned_at="",
        )
        assert loan.returned_at is None

    def test_unreadable_timestamp_is_rejected(self):
        """Test validation of required timestamps."""
        with pytest.raises(ValidationError, match="Unreadable timestamp"):
            LoanRecord(
                id="loan_000004",
                borrower_id="user_00001",
                book_id="book_00001",
                borrowed_at="yesterday",
                due_at="2024-03-15",
            )

    def test_records_are_frozen(self):
        loan = LoanRecord(
            id="loan_000005",
            borrower_id="user_00001",
            book_id="book_00001",
            borrowed_at="2024-03-01",
            due_at="2024-03-15",
        )
        with pytest.raises(ValidationError):
            loan.returned_at = datetime(2024, 3, 2, tzinfo=UTC)


class TestBookRecord:
    def test_available_cannot_exceed_total(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            BookRecord(id="b1", title="Ibong Adarna", author="Anonymous", total_copies=1, available_copies=2)

    def test_title_is_trimmed_and_required(self):
        assert BookRecord(id="b1", title="  Ibong Adarna ", author="Anonymous").title == "Ibong Adarna"
        with pytest.raises(ValidationError):
            BookRecord(id="b1", title="   ", author="Anonymous")

    def test_genre_is_optional(self):
        assert BookRecord(id="b1", title="Ibong Adarna", author="Anonymous").genre is None


class TestBorrowerRecord:
    """Student ID and email run through the ingestion validators."""

    def test_email_and_student_id_are_normalized(self):
        borrower = BorrowerRecord(
            id="user_00001",
            full_name="Juan Dela Cruz",
            student_id="  03-2024-000001 ",
            email=" Juan@Example.EDU ",
        )
        assert borrower.student_id == "03-2024-000001"
        assert borrower.email == "juan@example.edu"

    def test_blank_identifiers_are_optional(self):
        borrower = BorrowerRecord(id="user_00001", full_name="Juan", student_id="  ", email="")
        assert borrower.student_id is None
        assert borrower.email is None

    @pytest.mark.parametrize(
        "field, value",
        [
            ("student_id", "2024-0001"),
            ("student_id", "03-2024-00001X"),
            ("email", "not-an-email"),
            ("email", "juan@localhost"),
        ],
    )
    def test_malformed_identifiers_are_rejected(self, field, value):
        with pytest.raises(ValidationError):
            BorrowerRecord(id="user_00001", full_name="Juan", **{field: value})


class TestVisitRecord:
    def test_discriminated_visitor(self):
        visit = VisitRecord.model_validate(
            {
                "visitor": {"kind": "badge", "barcode": "LIB0000042"},
                "entered_at": "2024-03-15T09:00:00Z",
            }
        )
        assert isinstance(visit.visitor, BadgeVisitor)
        assert visit.branch == "Main"
        assert visit.exited_at is None

    def test_unknown_visitor_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            VisitRecord.model_validate(
                {"visitor": {"kind": "robot", "serial": "R2"}, "entered_at": "2024-03-15"}
            )


class TestResolveVisitor:
    """Precedence is user reference, student ID, then badge."""

    def test_user_reference_wins(self):
        visitor = resolve_visitor("user_00001", "03-2024-000001", "LIB0000001")
        assert visitor == UserVisitor(user_id="user_00001")

    def test_student_id_when_no_user(self):
        visitor = resolve_visitor("  ", "03-2024-000001", "LIB0000001")
        assert visitor == StudentVisitor(student_id="03-2024-000001")

    def test_badge_last(self):
        assert resolve_visitor(None, None, " LIB0000001 ") == BadgeVisitor(barcode="LIB0000001")

    def test_no_identifier_raises(self):
        with pytest.raises(ValueError, match="needs a user reference"):
            resolve_visitor(None, "", "  ")


class TestValidators:
    def test_normalize_text(self):
        assert normalize_text("  Main ") == "Main"
        assert normalize_text("   ") is None
        assert normalize_text(None) is None
        assert normalize_text(42) == "42"

    def test_normalize_email(self):
        assert normalize_email(" Juan.Cruz@Example.EDU ") == "juan.cruz@example.edu"
        for bad in ["", "not-an-email", "a@b", "two@@example.com"]:
            with pytest.raises(ValueError):
                normalize_email(bad)

    def test_normalize_student_id(self):
        assert normalize_student_id(" 03-2024-000123 ") == "03-2024-000123"
        with pytest.raises(ValueError, match="NN-NNNN-NNNNNN"):
            normalize_student_id("2024-000123")

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("Student", "student"),
            ("Librarian Staff", "librarian_staff"),
            ("librarian-staff", "librarian_staff"),
            ("  ADMIN ", "admin"),
            ("wizard", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize_user_role(self, value, expected):
        assert normalize_user_role(value) == expected

    def test_normalize_branch(self):
        assert normalize_branch(" Annex ") == "Annex"
        assert normalize_branch("") == "Main"
        assert normalize_branch(None, default="East") == "East"
