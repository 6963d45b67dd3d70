"""
Snapshot loading for report requests.

``LibrarySnapshotRepository`` reads rows from the database and turns them
into the validated domain records the analytics engine consumes. It never
writes. Rows that fail record validation are logged and skipped so that one
bad row cannot take a whole report down.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.records import BookRecord, BorrowerRecord, LoanRecord, VisitRecord
from ..models.validators import normalize_branch, resolve_visitor
from .schema import Book as BookDB
from .schema import Loan as LoanDB
from .schema import User as UserDB
from .schema import Visit as VisitDB
from .session import RepositoryException, SnapshotError, safe_query

logger = logging.getLogger(__name__)

__all__ = ["LibrarySnapshotRepository", "RepositoryException", "SnapshotError"]


def _as_db_time(moment: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.replace(tzinfo=None)


class LibrarySnapshotRepository:
    """Loads loan, book, borrower and visit snapshots as domain records."""

    def __init__(self, session: Session, default_branch: str = "Main"):
        self.session = session
        self.default_branch = default_branch

    def _scalars(self, query: Any, what: str) -> list[Any]:
        return safe_query(
            self.session,
            lambda s: list(s.execute(query).scalars()),
            f"Failed to load {what}",
        )

    def load_loans(self, *, since: datetime | None = None, active_only: bool = False) -> list[LoanRecord]:
        """
        Load loans, oldest borrow first.

        Args:
            since: Only loans borrowed at or after this instant
            active_only: Only loans that have not been returned
        """
        query = select(LoanDB).order_by(LoanDB.borrowed_at, LoanDB.id)
        if since is not None:
            query = query.where(LoanDB.borrowed_at >= _as_db_time(since))
        if active_only:
            query = query.where(LoanDB.returned_at.is_(None))

        records = []
        for row in self._scalars(query, "loans"):
            try:
                records.append(
                    LoanRecord(
                        id=row.id,
                        borrower_id=row.user_id,
                        book_id=row.book_id,
                        borrowed_at=row.borrowed_at,
                        due_at=row.due_at,
                        returned_at=row.returned_at,
                    )
                )
            except ValidationError as e:
                logger.warning("Skipping invalid loan %s: %s", row.id, e.errors()[0]["msg"])
        return records

    def load_books(self) -> list[BookRecord]:
        records = []
        for row in self._scalars(select(BookDB).order_by(BookDB.title, BookDB.id), "books"):
            try:
                records.append(BookRecord.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping invalid book %s: %s", row.id, e.errors()[0]["msg"])
        return records

    def load_borrowers(self) -> list[BorrowerRecord]:
        records = []
        for row in self._scalars(select(UserDB).order_by(UserDB.full_name, UserDB.id), "users"):
            try:
                records.append(BorrowerRecord.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping invalid user %s: %s", row.id, e.errors()[0]["msg"])
        return records

    def load_visits(self, *, since: datetime | None = None) -> list[VisitRecord]:
        """
        Load gate visits, resolving each visitor identifier.

        Args:
            since: Only visits entering at or after this instant
        """
        query = select(VisitDB).order_by(VisitDB.entered_at, VisitDB.id)
        if since is not None:
            query = query.where(VisitDB.entered_at >= _as_db_time(since))

        records = []
        for row in self._scalars(query, "visits"):
            try:
                records.append(
                    VisitRecord(
                        visitor=resolve_visitor(row.user_id, row.student_id, row.barcode),
                        branch=normalize_branch(row.branch, self.default_branch),
                        entered_at=row.entered_at,
                        exited_at=row.exited_at,
                    )
                )
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping invalid visit %s: %s", row.id, e)
        return records
