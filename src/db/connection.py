"""SQLAlchemy engine for the embedded DuckDB engine.

Single shared engine (lazy-created).  Queries read files through DuckDB
table functions, so the database itself stays empty; each query gets its
own connection that is returned on exit.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the shared embedded engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.embedded_url, echo=False)
        logger.info("Embedded engine created  database=%s", settings.embedded_database)
    return _engine


def dispose_engine() -> None:
    """Close the shared engine; the next query creates a fresh one."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Embedded engine disposed")


@contextmanager
def embedded_connection() -> Generator[Connection, None, None]:
    """Yield a connection from the shared engine, closed on exit."""
    conn = get_engine().connect()
    try:
        yield conn
    finally:
        conn.close()
