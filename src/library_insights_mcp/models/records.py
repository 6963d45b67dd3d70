"""
Domain records consumed by the analytics engine.

These are read-only snapshots of what the persistence layer stores:

- LoanRecord: a borrow transaction (borrower, book, due and return times)
- BookRecord: catalog entry with copy counts
- BorrowerRecord: library user, used for display names
- VisitRecord: a single entry through the library gates

Timestamps accept every shape ``coerce_date`` understands (datetimes,
epoch milliseconds, ISO strings, ``{"$date": ...}`` wrappers) and are
stored as aware UTC datetimes.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from ..analytics.dates import coerce_date
from ..analytics.usage import DEFAULT_BRANCH
from .validators import normalize_email, normalize_student_id, normalize_text
from .visitors import VisitorIdentifier


def _require_date(value: Any) -> datetime:
    coerced = coerce_date(value)
    if coerced is None:
        raise ValueError(f"Unreadable timestamp: {value!r}")
    return coerced


def _optional_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    return _require_date(value)


Timestamp = Annotated[datetime, BeforeValidator(_require_date)]
OptionalTimestamp = Annotated[datetime | None, BeforeValidator(_optional_date)]


class RecordModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# RECORDS
# =============================================================================


class LoanRecord(RecordModel):
    """A borrow transaction.

    ``returned_at`` stays ``None`` while the loan is active.
    """

    id: str = Field(..., min_length=1)
    borrower_id: str = Field(..., min_length=1)
    book_id: str = Field(..., min_length=1)
    borrowed_at: Timestamp
    due_at: Timestamp
    returned_at: OptionalTimestamp = None

    @property
    def is_active(self) -> bool:
        return self.returned_at is None


class BookRecord(RecordModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=300)
    genre: str | None = Field(None, max_length=100)
    total_copies: int = Field(default=1, ge=0)
    available_copies: int = Field(default=1, ge=0)

    @model_validator(mode="after")
    def validate_copies(self) -> "BookRecord":
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self


class BorrowerRecord(RecordModel):
    """A library user. Student ID and email are optional but must be well formed."""

    id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1, max_length=200)
    student_id: str | None = None
    email: str | None = None
    role: str = "student"

    @field_validator("student_id", mode="before")
    @classmethod
    def validate_student_id(cls, v: Any) -> str | None:
        if normalize_text(v) is None:
            return None
        return normalize_student_id(v)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: Any) -> str | None:
        if normalize_text(v) is None:
            return None
        return normalize_email(v)


class VisitRecord(RecordModel):
    """One entry through the gates; only ``entered_at`` and ``branch`` feed reports."""

    visitor: VisitorIdentifier
    branch: str = Field(default=DEFAULT_BRANCH, min_length=1)
    entered_at: Timestamp
    exited_at: OptionalTimestamp = None
