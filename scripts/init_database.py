#!/usr/bin/env python3
"""
Initialize the Library Insights database.

This script:
1. Creates all database tables
2. Optionally fills them with generated demo data
3. Verifies the expected tables exist

Usage:
    python scripts/init_database.py [--drop-existing] [--demo-data] [--database-url URL]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from library_insights_mcp.database import get_db_manager
from library_insights_mcp.database.seed import seed_database

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"users", "books", "loans", "visits"}


def main():
    parser = argparse.ArgumentParser(description="Initialize the Library Insights database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--demo-data",
        action="store_true",
        help="Recreate the tables and fill them with generated demo data",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for demo data")
    parser.add_argument("--database-url", help="Override the configured database URL")

    args = parser.parse_args()

    db_manager = get_db_manager(args.database_url)
    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        if args.demo_data:
            counts = seed_database(db_manager.database_url, seed=args.seed)
            logger.info("Demo data loaded: %s", counts)
        else:
            db_manager.init_database(drop_existing=args.drop_existing)

        tables = set(inspect(db_manager.engine).get_table_names())
        missing = EXPECTED_TABLES - tables
        if missing:
            logger.error("Missing expected tables: %s", sorted(missing))
            sys.exit(1)

        logger.info("Database ready: %s", ", ".join(sorted(tables)))
    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
