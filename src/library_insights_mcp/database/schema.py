"""
SQLAlchemy database schema for the Library Insights MCP Server.

The server only reads these tables; rows are written by the circulation
desk application (or by ``seed.py`` during development). Timestamps are
stored as naive UTC datetimes, which the analytics layer reads as UTC.

Tables:
1. users - borrowers and staff, keyed by an opaque id
2. books - catalog entries with copy counts
3. loans - one row per borrow transaction
4. visits - one row per entry through the library gates
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

from ..models.validators import normalize_user_role

Base = declarative_base()


class User(Base):
    """
    Users table - library members who borrow books or pass the gates.

    Reports use ``full_name`` and ``student_id`` for display.
    """

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    student_id = Column(String(20), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=False, index=True)
    department = Column(String(200), nullable=True)
    barcode = Column(String(100), nullable=True, unique=True)
    role = Column(String(30), nullable=False, default="student")
    status = Column(String(20), nullable=False, default="active")

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    loans = relationship("Loan", back_populates="borrower")
    visits = relationship("Visit", back_populates="user")

    __table_args__ = (
        Index("idx_user_student_id", "student_id"),
        CheckConstraint("status IN ('active', 'disabled')", name="check_user_status"),
    )

    @validates("role")
    def validate_role(self, key, value):  # noqa: ARG002
        """Store roles in their canonical snake_case form."""
        normalized = normalize_user_role(value or "student")
        if normalized is None:
            raise ValueError(f"Unknown role: {value}")
        return normalized


class Book(Base):
    """Books table - the catalog with copy counts."""

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(300), nullable=False)
    isbn = Column(String(20), nullable=True)
    genre = Column(String(100), nullable=True, index=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    loans = relationship("Loan", back_populates="book")

    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
    )


class Loan(Base):
    """
    Loans table - borrow transactions.

    ``returned_at`` is NULL while the book is out. Overdue status is never
    stored; it is derived from ``due_at`` at report time.
    """

    __tablename__ = "loans"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    borrowed_at = Column(DateTime, nullable=False, default=func.now())
    due_at = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    borrower = relationship("User", back_populates="loans")
    book = relationship("Book", back_populates="loans")

    __table_args__ = (
        Index("idx_loan_user", "user_id"),
        Index("idx_loan_book", "book_id"),
        Index("idx_loan_borrowed_at", "borrowed_at"),
        CheckConstraint("due_at >= borrowed_at", name="check_due_after_borrowed"),
    )


class Visit(Base):
    """
    Visits table - gate entries.

    A visit names its visitor by user reference, student ID or badge
    barcode; at least one must be present.
    """

    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=True)
    student_id = Column(String(20), nullable=True)
    barcode = Column(String(100), nullable=True)
    branch = Column(String(100), nullable=False, default="Main")
    entered_at = Column(DateTime, nullable=False, default=func.now())
    exited_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="visits")

    __table_args__ = (
        Index("idx_visit_entered_at", "entered_at"),
        Index("idx_visit_branch", "branch"),
        CheckConstraint(
            "user_id IS NOT NULL OR student_id IS NOT NULL OR barcode IS NOT NULL",
            name="check_visit_has_visitor",
        ),
    )
