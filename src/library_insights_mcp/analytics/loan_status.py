"""Loan status classification relative to a reference instant."""

from datetime import datetime
from typing import Any

from ..models.reports import LoanStatusKey, LoanStatusMeta
from .dates import coerce_date, utc_now, whole_days_between
from .fields import read_field

RETURNED = LoanStatusMeta(key=LoanStatusKey.RETURNED, label="returned")
OVERDUE = LoanStatusMeta(key=LoanStatusKey.OVERDUE, label="overdue")


def loan_due_at(loan: Any) -> datetime | None:
    return coerce_date(read_field(loan, "due_at", "dueAt"))


def loan_returned_at(loan: Any) -> datetime | None:
    return coerce_date(read_field(loan, "returned_at", "returnedAt"))


def loan_borrowed_at(loan: Any) -> datetime | None:
    return coerce_date(read_field(loan, "borrowed_at", "borrowedAt"))


def resolve_loan_status_meta(
    loan: Any,
    *,
    now: Any = None,
    active_label: str = "active",
) -> LoanStatusMeta:
    """Classify a loan as returned, overdue or active.

    A readable ``returned_at`` wins regardless of the due date. Otherwise the
    loan is overdue when ``due_at`` is strictly before ``now``. Only the
    ``label`` of an active loan is configurable (e.g. ``"On Time"``); ``key``
    is always one of :class:`LoanStatusKey`.

    Args:
        loan: LoanRecord, ORM row or mapping (snake_case or camelCase keys)
        now: Reference instant in any coercible shape; defaults to now (UTC)
        active_label: Display label for loans that are neither returned
            nor overdue
    """
    if loan_returned_at(loan) is not None:
        return RETURNED

    reference = coerce_date(now) or utc_now()
    due_at = loan_due_at(loan)
    if due_at is not None and due_at < reference:
        return OVERDUE

    return LoanStatusMeta(key=LoanStatusKey.ACTIVE, label=active_label or "active")


def days_overdue(loan: Any, *, now: Any = None) -> int:
    """Whole days an overdue loan is past due (minimum 1); 0 when not overdue."""
    reference = coerce_date(now) or utc_now()
    if resolve_loan_status_meta(loan, now=reference).key != LoanStatusKey.OVERDUE:
        return 0
    due_at = loan_due_at(loan)
    return max(1, whole_days_between(due_at, reference))
