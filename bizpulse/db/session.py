"""Database engine helpers."""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/bizpulse"


def create_engine_from_env(url: str | None = None) -> Engine:
    """Create an engine from ``url`` or the DATABASE_URL environment variable.

    Repository calls run in executor threads, so SQLite connections are
    opened with ``check_same_thread`` off; in-memory SQLite also shares one
    connection so every thread sees the same database.
    """
    url = url or os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, future=True)

    kwargs: dict[str, object] = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    logger.info("Using SQLite database %s", parsed.database or ":memory:")
    return create_engine(url, future=True, **kwargs)
