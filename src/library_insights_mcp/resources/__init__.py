"""Library Insights MCP Resources Package

Read-only report endpoints. Each entry in ``report_resources`` carries a
URI (or URI template), display metadata and the async handler that
``server.py`` registers with FastMCP.
"""

from .reports import get_response_cache, report_resources, reset_response_cache

all_resources = report_resources

__all__ = [
    "all_resources",
    "get_response_cache",
    "report_resources",
    "reset_response_cache",
]
