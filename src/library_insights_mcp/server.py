"""Library Insights MCP Server - Server Entry Point

Creates the FastMCP server, registers the report resources and runs it on
the stdio transport. stdout carries JSON-RPC messages, so all logging goes
to stderr.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from library_insights_mcp.config import get_config
from library_insights_mcp.database import get_db_manager
from library_insights_mcp.observability import initialize_observability
from library_insights_mcp.resources import all_resources

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Library Insights MCP Server - read-only analytics over a library's loans, "
        "catalog and gate visits. Use the library://reports/* resources for borrower, "
        "genre, idle-book, fine and overdue reports, and library://analytics/* for "
        "staffing recommendations, visit heatmaps and the live circulation snapshot."
    ),
)


def register_resources(server: FastMCP, resources: list[dict[str, Any]]) -> None:
    """Register resource definitions, templated or static."""
    for resource in resources:
        if "uri_template" in resource:
            server.resource(
                uri_template=resource["uri_template"],
                name=resource["name"],
                description=resource["description"],
                mime_type=resource["mime_type"],
            )(resource["handler"])
        else:
            server.resource(
                uri=resource["uri"],
                name=resource["name"],
                description=resource["description"],
                mime_type=resource["mime_type"],
            )(resource["handler"])


register_resources(mcp, all_resources)
logger.info("Registered %d report resources", len(all_resources))


def run_stdio_server() -> None:
    """Run the MCP server on the stdio transport."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    initialize_observability(config)

    if not get_db_manager().verify_connection():
        logger.error("Database at %s is not reachable", config.database_path)
        sys.exit(1)

    try:
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)
    finally:
        get_db_manager().close()


def main() -> None:
    """Entry point for ``library-insights-mcp`` and ``python -m library_insights_mcp.server``."""
    try:
        logger.info("=" * 60)
        logger.info("Library Insights MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Database: %s", config.database_path)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        run_stdio_server()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":
    main()
