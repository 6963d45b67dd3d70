"""
Database layer for the Library Insights MCP Server.

Read-only from the server's point of view: report resources open a short
session, load record snapshots through ``LibrarySnapshotRepository`` and
hand them to the analytics engine.
"""

from .schema import Base, Book, Loan, User, Visit
from .session import (
    DatabaseManager,
    RepositoryException,
    SnapshotError,
    get_db_manager,
    reset_db_manager,
    safe_query,
    session_scope,
)
from .snapshots import LibrarySnapshotRepository

__all__ = [
    "Base",
    "Book",
    "DatabaseManager",
    "LibrarySnapshotRepository",
    "Loan",
    "RepositoryException",
    "SnapshotError",
    "User",
    "Visit",
    "get_db_manager",
    "reset_db_manager",
    "safe_query",
    "session_scope",
]
