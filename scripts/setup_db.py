"""
scripts/setup_db.py — Initialize the database schema.

Run once before starting the application for the first time:
    python scripts/setup_db.py

Creates the lead_profiles, edit_history, questionnaire_sessions and
questionnaire_drafts tables from qualifier/db/models.py metadata.
"""

import logging
import os
import sys

# Ensure the project root is on the path so we can import `qualifier`
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import inspect, text

from qualifier.config import settings
from qualifier.db.models import Base
from qualifier.db.session import engine

logger = logging.getLogger(__name__)


def setup_db() -> list[str]:
    logger.info("Connecting to database %s...", settings.database_url[:40])
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Connection successful.")

    Base.metadata.create_all(bind=engine)

    tables = inspect(engine).get_table_names()
    logger.info("Tables in database: %s", tables)
    return tables


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    setup_db()
