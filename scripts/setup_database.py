#!/usr/bin/env python3
"""
Database setup script for sqlstore.

Creates the sessions table on the configured database and optionally
removes records that have already expired.
"""

import argparse
import logging
import sys

from sqlstore.core.config import settings
from sqlstore.core.exceptions import SessionStoreError
from sqlstore.core.logging_config import configure_logging
from sqlstore.core.utils.cleanup import ExpirySweeper
from sqlstore.db.store_client import SQLAlchemyStoreClient

logger = logging.getLogger("sqlstore.setup")


def main(argv=None) -> bool:
    """Provision the sessions table based on configuration"""
    parser = argparse.ArgumentParser(description="Provision the sqlstore sessions table")
    parser.add_argument(
        "--purge-expired",
        action="store_true",
        help="delete expired session records after creating the table",
    )
    args = parser.parse_args(argv)

    configure_logging()
    client = SQLAlchemyStoreClient.from_url(settings.database_url)
    try:
        client.ensure_schema()
        logger.info("Sessions table is ready")

        if args.purge_expired:
            deleted = ExpirySweeper(client).run_once()
            logger.info(f"Purged {deleted} expired sessions")
        return True
    except SessionStoreError as e:
        logger.error(f"Database setup failed: {e}")
        return False
    finally:
        client.close()


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
