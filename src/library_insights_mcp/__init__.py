"""
Library Insights MCP Server Package.

Read-only analytics for a library's circulation desk, served over the
Model Context Protocol.

Key Components:
- analytics: pure report builders (loan status, visit usage, staffing, fines)
- models: Pydantic records and report payloads
- database: SQLAlchemy schema, sessions and snapshot loading
- config: Configuration management with Pydantic v2
- resources: MCP resources (read-only endpoints)
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
