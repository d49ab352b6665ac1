"""Database migration helpers."""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from bizpulse.db.session import create_engine_from_env
from bizpulse.db.tables import metadata
from bizpulse.utils.logs import configure_logging

logger = logging.getLogger(__name__)


def run_migrations(engine: Engine) -> None:
    """Create any missing tables, indexes and constraints."""
    metadata.create_all(engine)
    logger.info("Schema is up to date (%s tables)", len(metadata.tables))


def main() -> None:
    load_dotenv()
    configure_logging()
    engine = create_engine_from_env()
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
