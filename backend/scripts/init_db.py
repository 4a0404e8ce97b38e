"""
Create the MedicaidReady tables.

    python scripts/init_db.py [--database-url URL]

Creates request_access_submissions, provider_access_audit and providers
when missing. Existing tables are left untouched, so the script is safe
to re-run after a deploy.
"""

import argparse
import logging
import os
import sys

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from medicaidready.config.settings import get_database_url
from medicaidready.models import Base

logger = logging.getLogger("medicaidready.scripts.init_db")


def init_database(database_url: str) -> list[str]:
    """
    Create missing tables.

    Returns:
        Sorted names of the tables present afterwards
    """
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        echo=os.getenv("SQL_ECHO", "false").lower() == "true",
    )
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        expected = sorted(Base.metadata.tables)
        before = set(inspect(engine).get_table_names())
        Base.metadata.create_all(bind=engine)
        present = sorted(inspect(engine).get_table_names())

        for table_name in expected:
            state = "exists" if table_name in before else "created"
            logger.info("Table %s: %s", table_name, state)
        return present
    finally:
        engine.dispose()


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    parser = argparse.ArgumentParser(description="Create MedicaidReady database tables")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    args = parser.parse_args(argv)

    database_url = args.database_url or get_database_url()
    if not database_url:
        logger.error("DATABASE_URL is not set and --database-url was not given")
        return 2

    try:
        init_database(database_url)
    except SQLAlchemyError as e:
        logger.error("Database initialization failed: %s", e)
        return 1
    logger.info("Database initialization complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
