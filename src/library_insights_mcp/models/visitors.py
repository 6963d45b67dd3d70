"""
Visitor identifiers for gate visits.

A visit is attributed to exactly one kind of identifier, resolved once at
ingestion. The ``kind`` field discriminates the union when records are
loaded from JSON.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class VisitorModel(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class UserVisitor(VisitorModel):
    """Visit attributed to a registered user."""

    kind: Literal["user"] = "user"
    user_id: str = Field(..., min_length=1)


class StudentVisitor(VisitorModel):
    """Visit recorded by student ID with no matching account."""

    kind: Literal["student"] = "student"
    student_id: str = Field(..., min_length=1)


class BadgeVisitor(VisitorModel):
    """Visit recorded from a physical badge barcode."""

    kind: Literal["badge"] = "badge"
    barcode: str = Field(..., min_length=1)


VisitorIdentifier = Annotated[
    UserVisitor | StudentVisitor | BadgeVisitor,
    Field(discriminator="kind"),
]
