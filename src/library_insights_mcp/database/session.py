"""
Database session management for the Library Insights MCP Server.

The server reads snapshots of loans, books, users and visits for each report
request. Sessions are short-lived: open one with ``session_scope()``, load
the rows, and let the context manager close it.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RepositoryException(Exception):
    """Base exception for data access failures."""


class SnapshotError(RepositoryException):
    """Raised when a record snapshot cannot be loaded."""


class DatabaseManager:
    """
    Owns the engine and session factory for one database URL.

    The engine is created lazily so constructing a manager never touches
    the filesystem or the network.
    """

    def __init__(self, database_url: str | None = None):
        """
        Args:
            database_url: SQLAlchemy database URL. Defaults to the configured
                SQLite file.
        """
        if database_url is None:
            database_url = get_config().get_database_url()
            logger.info("Using database at: %s", database_url)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                # single shared connection avoids "database is locked" under stdio
                self._engine = create_engine(
                    self.database_url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                    echo=False,
                )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Commits on success, rolls back and re-raises on any error, and always
        closes the session.
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except Exception:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """Create all tables, optionally dropping existing ones first."""
        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=self.engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=self.engine)

    def verify_connection(self) -> bool:
        """Health check: ``True`` when a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False
        return True

    def close(self) -> None:
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


class _ManagerStore:
    """Internal storage for the database manager singleton."""

    _instance: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager.

    Args:
        database_url: Database URL (only used on first call)
    """
    if _ManagerStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ManagerStore._instance = DatabaseManager(database_url)  # type: ignore[reportPrivateUsage]
    return _ManagerStore._instance  # type: ignore[reportPrivateUsage]


def reset_db_manager() -> None:
    """Dispose of the global manager (useful for testing)."""
    if _ManagerStore._instance is not None:  # type: ignore[reportPrivateUsage]
        _ManagerStore._instance.close()  # type: ignore[reportPrivateUsage]
    _ManagerStore._instance = None  # type: ignore[reportPrivateUsage]


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Convenience context manager on the global database manager.

    Example:
        ```python
        with session_scope() as session:
            loans = LibrarySnapshotRepository(session).load_loans()
        ```
    """
    with get_db_manager().session_scope() as session:
        yield session


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Run a query, translating database failures into ``SnapshotError``.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Context prepended to the error message

    Raises:
        SnapshotError: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise SnapshotError(f"{error_msg}: Database query failed") from e
