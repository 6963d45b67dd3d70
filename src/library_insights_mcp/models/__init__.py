"""
Library Insights MCP Server Models.

Pydantic models for the records the analytics engine reads and the report
payloads it produces:

- records: LoanRecord, BookRecord, BorrowerRecord, VisitRecord
- visitors: UserVisitor, StudentVisitor, BadgeVisitor identifiers
- validators: ingestion-time normalization, visitor resolution
- reports: JSON-serializable report payloads
"""

from .reports import (
    FinesReport,
    GenreTrendsReport,
    LoanStatusKey,
    LoanStatusMeta,
    StaffingReport,
    TopBorrowersReport,
    UnderutilizedReport,
)
from .records import BookRecord, BorrowerRecord, LoanRecord, VisitRecord
from .validators import resolve_visitor
from .visitors import BadgeVisitor, StudentVisitor, UserVisitor

__all__ = [
    "BadgeVisitor",
    "BookRecord",
    "BorrowerRecord",
    "FinesReport",
    "GenreTrendsReport",
    "LoanRecord",
    "LoanStatusKey",
    "LoanStatusMeta",
    "StaffingReport",
    "StudentVisitor",
    "TopBorrowersReport",
    "UnderutilizedReport",
    "UserVisitor",
    "VisitRecord",
    "resolve_visitor",
]
