"""Main entry point for maintenance commands."""

import argparse
import asyncio
import logging
import sys

import psycopg2

from ai_memo.db import get_connection, init_schema
from ai_memo.notes import NoteRepository

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def init_db() -> None:
    conn = get_connection()
    try:
        init_schema(conn)
    finally:
        conn.close()


def cleanup_drafts() -> int:
    conn = get_connection()
    try:
        return NoteRepository(conn).cleanup_expired_drafts()
    finally:
        conn.close()


def test_connection() -> bool:
    """Send a test prompt to the model and log the reply."""
    from ai_memo.services.ai_processing import AIProcessingService

    # The connection test does not touch the database
    service = AIProcessingService(repository=None)
    result = asyncio.run(service.test_connection())
    if result.success:
        logger.info(result.data["message"])
    else:
        logger.error(result.error)
    return result.success


def main():
    """Main function for the maintenance CLI."""
    parser = argparse.ArgumentParser(description="AI memo maintenance commands")
    parser.add_argument(
        "command",
        choices=["init-db", "cleanup-drafts", "test-connection"],
        help="init-db: create tables, cleanup-drafts: delete expired drafts, "
        "test-connection: check the Vertex AI connection",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.command == "init-db":
            init_db()
        elif args.command == "cleanup-drafts":
            count = cleanup_drafts()
            logger.info(f"Removed {count} expired drafts")
        elif not test_connection():
            sys.exit(1)
    except psycopg2.Error as e:
        logger.error(f"Database command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
