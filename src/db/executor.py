"""
Embedded SQL executor.

Every embedded-engine query runs through ``execute_query``, which:
  1. Wraps the SQL in text() and binds parameters (never interpolated)
  2. Converts Decimal/date/datetime to JSON-safe Python types
"""
from __future__ import annotations

import decimal
import datetime
from typing import Any

from sqlalchemy import text

from src.db.connection import embedded_connection
from src.core.logging import get_logger

logger = get_logger(__name__)


def _serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


def execute_query(sql: str, params: dict | None = None) -> list[dict[str, Any]]:
    """Execute *sql* on the embedded engine and return rows as dicts.

    Raises
    ------
    sqlalchemy.exc.SQLAlchemyError
        If the query fails for any reason.
    """
    logger.debug("Executing embedded SQL (%d chars, %d params)", len(sql), len(params or {}))

    with embedded_connection() as conn:
        result = conn.execute(text(sql), params or {})
        columns = list(result.keys())
        rows = [
            {col: _serialise_value(val) for col, val in zip(columns, row)}
            for row in result.fetchall()
        ]

    logger.debug("Returned %d rows", len(rows))
    return rows
