"""
Error taxonomy surfaced to the caller.

  ValidationError  -- malformed / incomplete spec, raised before any adapter runs
  NotFoundError    -- missing file, dataset, table, or a query with zero rows
  ExecutionError   -- backend failure, carries the SQL text and source identifiers
"""
from __future__ import annotations

from typing import Any


class ChartQueryError(Exception):
    """Base class for every error the core raises on purpose."""

    def __init__(
        self,
        message: str,
        spec: dict[str, Any] | None = None,
        source: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.spec = spec
        self.source = source

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "spec": self.spec,
            "source": self.source,
        }


class ValidationError(ChartQueryError):
    """The query spec is malformed.  ``field`` names the first offending field."""

    def __init__(
        self,
        field: str,
        errors: list[str],
        spec: dict[str, Any] | None = None,
    ):
        super().__init__("; ".join(errors), spec=spec)
        self.field = field
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        data["errors"] = list(self.errors)
        return data


class NotFoundError(ChartQueryError):
    """Source or table absent, or the query matched nothing.

    ``kind`` is one of: file, dataset, table, rows.
    """

    def __init__(
        self,
        message: str,
        kind: str,
        spec: dict[str, Any] | None = None,
        source: dict[str, Any] | None = None,
    ):
        super().__init__(message, spec=spec, source=source)
        self.kind = kind

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind
        return data


class ExecutionError(ChartQueryError):
    """A backend failed while reading or aggregating."""

    def __init__(
        self,
        message: str,
        sql: str | None = None,
        spec: dict[str, Any] | None = None,
        source: dict[str, Any] | None = None,
    ):
        super().__init__(message, spec=spec, source=source)
        self.sql = sql

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["sql"] = self.sql
        return data
