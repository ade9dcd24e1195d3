"""
SQL dialect expression builders.

A dialect knows how to quote identifiers, cast values, bucket dates by month,
and name bound parameters.  It never sees filter *values*: those always travel
as parameters next to the SQL text.

Date expressions follow the same order as ``src.core.dates.parse_date`` so the
SQL backends bucket a cell exactly where the in-memory adapter does:

  1. all digits            Excel serial day count since 1899-12-30
  2. YYYY/MM/DD
  3. DD/MM/YYYY            (DD/MM/YY reads as 20YY)
  4. other slash strings   not a date
  5. anything else         ISO date / timestamp
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_]")

# Largest serial that is still a valid date (9999-12-31)
MAX_SERIAL = 2958465
SERIAL_EPOCH = "DATE '1899-12-30'"

_DIGITS = "[0-9]+"
_YEAR_FIRST = "[0-9]{4}/[0-9]{1,2}/[0-9]{1,2}"
_DAY_FIRST = "[0-9]{1,2}/[0-9]{1,2}/[0-9]{4}"
_DAY_FIRST_SHORT = "[0-9]{1,2}/[0-9]{1,2}/[0-9]{2}"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so *value* matches literally (backslash escapes)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlDialect(ABC):
    """Expression hooks every SQL backend provides."""

    name = "base"

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Quote a column name for use in SQL text."""

    @abstractmethod
    def placeholder(self, param: str) -> str:
        """Reference to the bound parameter *param*."""

    @abstractmethod
    def text_expr(self, column_sql: str) -> str:
        """Lower-cased text form of a column, for case-insensitive matching."""

    @abstractmethod
    def number_expr(self, column_sql: str) -> str:
        """Column as a float; NULL when the cell isn't numeric."""

    @abstractmethod
    def date_expr(self, column_sql: str) -> str:
        """Column as a DATE; NULL when the cell isn't a date."""

    @abstractmethod
    def month_bucket(self, column_sql: str) -> str:
        """``YYYY-MM`` key, or the raw text when the cell isn't a date."""

    @abstractmethod
    def string_key(self, column_sql: str) -> str:
        """Column as text, used as a group key."""

    @abstractmethod
    def in_clause(self, expr: str, param: str, values: list[Any], params: dict[str, Any]) -> str:
        """Membership test; binds *values* into *params*."""

    def date_param(self, param: str) -> str:
        return f"CAST({self.placeholder(param)} AS DATE)"

    def like_clause(self, expr: str, param: str) -> str:
        return f"{expr} LIKE {self.placeholder(param)}"


class EmbeddedDialect(SqlDialect):
    """DuckDB over a delimited / columnar file.

    Identifiers are always double-quoted; parameters use ``:name`` (SQLAlchemy
    ``text()`` style); IN lists expand to one parameter per value.
    """

    name = "duckdb"

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def placeholder(self, param: str) -> str:
        return f":{param}"

    def text_expr(self, column_sql: str) -> str:
        return f"LOWER(CAST({column_sql} AS VARCHAR))"

    def number_expr(self, column_sql: str) -> str:
        return f"TRY_CAST({column_sql} AS DOUBLE)"

    def date_expr(self, column_sql: str) -> str:
        t = f"TRIM(CAST({column_sql} AS VARCHAR))"

        def part(i: int, pad: bool = True) -> str:
            piece = f"split_part({t}, '/', {i})"
            return f"lpad({piece}, 2, '0')" if pad else piece

        def iso(year: str, month: str, day: str) -> str:
            return f"TRY_CAST({year} || '-' || {month} || '-' || {day} AS DATE)"

        short_year = "'20' || " + part(3, False)

        return (
            "(CASE"
            f" WHEN regexp_full_match({t}, '{_DIGITS}') AND TRY_CAST({t} AS BIGINT) <= {MAX_SERIAL}"
            f" THEN {SERIAL_EPOCH} + TRY_CAST({t} AS INTEGER)"
            f" WHEN regexp_full_match({t}, '{_DIGITS}') THEN NULL"
            f" WHEN regexp_full_match({t}, '{_YEAR_FIRST}') THEN {iso(part(1, False), part(2), part(3))}"
            f" WHEN regexp_full_match({t}, '{_DAY_FIRST}') THEN {iso(part(3, False), part(2), part(1))}"
            f" WHEN regexp_full_match({t}, '{_DAY_FIRST_SHORT}') THEN {iso(short_year, part(2), part(1))}"
            f" WHEN contains({t}, '/') THEN NULL"
            f" ELSE TRY_CAST(TRY_CAST({t} AS TIMESTAMP) AS DATE)"
            " END)"
        )

    def month_bucket(self, column_sql: str) -> str:
        return f"COALESCE(strftime({self.date_expr(column_sql)}, '%Y-%m'), CAST({column_sql} AS VARCHAR))"

    def string_key(self, column_sql: str) -> str:
        return f"CAST({column_sql} AS VARCHAR)"

    def like_clause(self, expr: str, param: str) -> str:
        return f"{expr} LIKE {self.placeholder(param)} ESCAPE '\\'"

    def in_clause(self, expr: str, param: str, values: list[Any], params: dict[str, Any]) -> str:
        names = []
        for i, value in enumerate(values):
            name = f"{param}_{i}"
            params[name] = value
            names.append(self.placeholder(name))
        return f"{expr} IN ({', '.join(names)})"


class WarehouseDialect(SqlDialect):
    """BigQuery standard SQL.

    Identifiers are backtick-quoted only when they contain characters outside
    ``[A-Za-z0-9_]``; parameters are named (``@name``); IN lists bind one
    array parameter and use ``UNNEST``.
    """

    name = "bigquery"

    def quote_identifier(self, name: str) -> str:
        if _NON_WORD_RE.search(name):
            return "`" + name.replace("`", "\\`") + "`"
        return name

    def qualified_table(self, project_id: str, dataset_id: str, table_id: str) -> str:
        return "`" + f"{project_id}.{dataset_id}.{table_id}".replace("`", "\\`") + "`"

    def placeholder(self, param: str) -> str:
        return f"@{param}"

    def text_expr(self, column_sql: str) -> str:
        return f"LOWER(CAST({column_sql} AS STRING))"

    def number_expr(self, column_sql: str) -> str:
        return f"SAFE_CAST({column_sql} AS FLOAT64)"

    def date_expr(self, column_sql: str) -> str:
        t = f"TRIM(CAST({column_sql} AS STRING))"
        short_year = f"CONCAT(SUBSTR({t}, 1, LENGTH({t}) - 2), '20', SUBSTR({t}, -2))"
        return (
            "(CASE"
            f" WHEN REGEXP_CONTAINS({t}, '^{_DIGITS}$') AND SAFE_CAST({t} AS INT64) <= {MAX_SERIAL}"
            f" THEN DATE_ADD({SERIAL_EPOCH}, INTERVAL SAFE_CAST({t} AS INT64) DAY)"
            f" WHEN REGEXP_CONTAINS({t}, '^{_DIGITS}$') THEN NULL"
            f" WHEN REGEXP_CONTAINS({t}, '^{_YEAR_FIRST}$') THEN SAFE.PARSE_DATE('%Y/%m/%d', {t})"
            f" WHEN REGEXP_CONTAINS({t}, '^{_DAY_FIRST}$') THEN SAFE.PARSE_DATE('%d/%m/%Y', {t})"
            f" WHEN REGEXP_CONTAINS({t}, '^{_DAY_FIRST_SHORT}$') THEN SAFE.PARSE_DATE('%d/%m/%Y', {short_year})"
            f" WHEN STRPOS({t}, '/') > 0 THEN NULL"
            f" ELSE SAFE.PARSE_DATE('%Y-%m-%d', SUBSTR({t}, 1, 10))"
            " END)"
        )

    def month_bucket(self, column_sql: str) -> str:
        return f"COALESCE(FORMAT_DATE('%Y-%m', {self.date_expr(column_sql)}), CAST({column_sql} AS STRING))"

    def string_key(self, column_sql: str) -> str:
        return f"CAST({column_sql} AS STRING)"

    def in_clause(self, expr: str, param: str, values: list[Any], params: dict[str, Any]) -> str:
        params[param] = list(values)
        return f"{expr} IN UNNEST({self.placeholder(param)})"
