#!/usr/bin/env python3
"""
Simple database creation script.
Creates every table from the current models; safe to run repeatedly.
"""

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from app.db.models import Base

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """Create missing tables for the current models."""
    existing = set(inspect(engine).get_table_names())
    Base.metadata.create_all(bind=engine)
    created = [name for name in Base.metadata.tables if name not in existing]
    if created:
        logger.info(f"Created tables: {', '.join(created)}")


def main() -> None:
    from app.core.config import settings
    from app.db.connection import build_engine

    engine = build_engine(settings.DATABASE_URL)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)-8s - %(message)s")
    logger.info(f"Initializing database at {engine.url.render_as_string(hide_password=True)}")
    init_db(engine)
    logger.info(f"Database ready for {settings.PROJECT_NAME}")


if __name__ == "__main__":
    main()
