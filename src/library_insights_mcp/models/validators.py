"""
Input validation for records entering the analytics layer.

These functions run before domain records are built, independently of the
storage schema. Each one either returns a normalized value or raises
``ValueError``; inside pydantic validators that surfaces as a
``ValidationError``.
"""

import re
from typing import Any

from ..analytics.usage import DEFAULT_BRANCH
from .visitors import BadgeVisitor, StudentVisitor, UserVisitor, VisitorIdentifier

# Student/staff identifiers look like 03-0000-000000
STUDENT_ID_REGEX = re.compile(r"^\d{2}-\d{4}-\d{6}$")

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USER_ROLE_VALUES = (
    "student",
    "faculty",
    "staff",
    "admin",
    "librarian",
    "librarian_staff",
)


def normalize_text(value: Any) -> str | None:
    """Trim a text value; blank or missing becomes ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_email(value: Any) -> str:
    email = normalize_text(value)
    if email is None:
        raise ValueError("Email is required")
    email = email.lower()
    if not EMAIL_REGEX.match(email):
        raise ValueError(f"Invalid email address: {email}")
    return email


def normalize_student_id(value: Any) -> str:
    student_id = normalize_text(value)
    if student_id is None:
        raise ValueError("Student ID is required")
    if not STUDENT_ID_REGEX.match(student_id):
        raise ValueError(f"Student ID must match NN-NNNN-NNNNNN, got {student_id!r}")
    return student_id


def normalize_user_role(value: Any) -> str | None:
    """Normalize a role name.

    Accepts variants such as ``"Librarian Staff"`` or ``"librarian-staff"``.
    Unknown roles return ``None`` so callers decide how to handle them.
    """
    candidate = normalize_text(value)
    if candidate is None:
        return None
    normalized = re.sub(r"[\s-]+", "_", candidate.lower())
    return normalized if normalized in USER_ROLE_VALUES else None


def normalize_branch(value: Any, default: str = DEFAULT_BRANCH) -> str:
    return normalize_text(value) or default


def resolve_visitor(
    user_id: Any = None,
    student_id: Any = None,
    barcode: Any = None,
) -> VisitorIdentifier:
    """Pick the identifier a visit is attributed to.

    Precedence is user reference, then student ID, then badge barcode.

    Raises:
        ValueError: If none of the identifiers is present
    """
    user_ref = normalize_text(user_id)
    if user_ref is not None:
        return UserVisitor(user_id=user_ref)
    student_ref = normalize_text(student_id)
    if student_ref is not None:
        return StudentVisitor(student_id=student_ref)
    badge = normalize_text(barcode)
    if badge is not None:
        return BadgeVisitor(barcode=badge)
    raise ValueError("A visit needs a user reference, student ID or barcode")
