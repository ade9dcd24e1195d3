"""
SQL Generator -- turns a validated DataQuerySpec into one parameterised
aggregate SELECT for a given dialect.

Shape of every statement:

  SELECT <group_key>[, <series_key>], <aggregate> AS value
  FROM <table>
  [WHERE <filter> AND ...]
  [GROUP BY ...]
  [HAVING ...]
  [ORDER BY group_key[, series_key]]
  [LIMIT n]

Filter values are bound as parameters.  Text comparisons are
case-insensitive, date-like columns compare as dates, everything else
compares as a number -- the same rules the in-memory adapter applies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.charting.spec import DataQuerySpec, QueryFilter
from src.core.dates import to_iso
from src.governance.heuristics import looks_like_date_column
from src.sources.dialects import SqlDialect, escape_like

_NEVER = "1 = 0"


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)
    date_bucketed: bool = False
    grouped: bool = False  # selects a group_key column
    multi_series: bool = False


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _filter_clause(
    f: QueryFilter,
    index: int,
    dialect: SqlDialect,
    params: dict[str, Any],
) -> str:
    column = dialect.quote_identifier(f.column)
    param = f"p{index}"

    if f.operator == "IN":
        values = [str(v).lower() for v in f.values if v is not None]
        if not values:
            return _NEVER
        return dialect.in_clause(dialect.text_expr(column), param, values, params)

    if f.operator == "LIKE":
        needle = str(f.value).strip("%").lower()
        params[param] = f"%{escape_like(needle)}%"
        return dialect.like_clause(dialect.text_expr(column), param)

    if looks_like_date_column(f.column):
        iso = to_iso(f.value)
        if iso is None:
            return _NEVER
        params[param] = iso
        return f"{dialect.date_expr(column)} {f.operator} {dialect.date_param(param)}"

    if f.operator == "=":
        params[param] = str(f.value).lower()
        return f"{dialect.text_expr(column)} = {dialect.placeholder(param)}"

    number = _to_float(f.value)
    if number is None:
        return _NEVER
    params[param] = number
    return f"{dialect.number_expr(column)} {f.operator} {dialect.placeholder(param)}"


def _key_expr(column: str, dialect: SqlDialect) -> str:
    quoted = dialect.quote_identifier(column)
    if looks_like_date_column(column):
        return dialect.month_bucket(quoted)
    return dialect.string_key(quoted)


def _aggregate_expr(spec: DataQuerySpec, dialect: SqlDialect) -> str:
    if spec.type == "count":
        return "COUNT(*)"
    measure = dialect.number_expr(dialect.quote_identifier(spec.measure or ""))
    if spec.type == "sum":
        return f"COALESCE(SUM({measure}), 0)"
    # Unparsable measures count as 0, matching the in-memory average
    return f"AVG(COALESCE({measure}, 0))"


def build_aggregate_query(
    spec: DataQuerySpec,
    table_sql: str,
    dialect: SqlDialect,
    row_limit: int | None = None,
    exclude_zero_sums: bool = False,
) -> CompiledQuery:
    """Build the aggregate SELECT for *spec* over *table_sql*.

    Parameters
    ----------
    table_sql : str
        Already-quoted table reference or table function call.
    row_limit : int, optional
        Appends ``LIMIT n`` when set.
    exclude_zero_sums : bool
        For sum queries, drop groups whose sum is exactly zero.
    """
    params: dict[str, Any] = {}
    select_parts: list[str] = []
    group_parts: list[str] = []
    order_parts: list[str] = []

    if spec.dimension:
        expr = _key_expr(spec.dimension, dialect)
        select_parts.append(f"{expr} AS group_key")
        group_parts.append(expr)
        order_parts.append("group_key")

    multi = bool(spec.multi_series and spec.series_dimension)
    if multi:
        expr = _key_expr(spec.series_dimension or "", dialect)
        select_parts.append(f"{expr} AS series_key")
        group_parts.append(expr)
        order_parts.append("series_key")

    aggregate = _aggregate_expr(spec, dialect)
    select_parts.append(f"{aggregate} AS value")

    where_parts = [
        _filter_clause(f, i, dialect, params) for i, f in enumerate(spec.filters)
    ]

    having_parts: list[str] = []
    if not group_parts:
        # Ungrouped aggregates over nothing still return one row; drop it
        having_parts.append("COUNT(*) > 0")
    if exclude_zero_sums and spec.type == "sum":
        having_parts.append(f"{aggregate} != 0")

    sql_lines = ["SELECT", "  " + ",\n  ".join(select_parts), f"FROM {table_sql}"]
    if where_parts:
        sql_lines.append("WHERE " + "\n  AND ".join(where_parts))
    if group_parts:
        sql_lines.append("GROUP BY " + ", ".join(group_parts))
    if having_parts:
        sql_lines.append("HAVING " + " AND ".join(having_parts))
    if order_parts:
        sql_lines.append("ORDER BY " + ", ".join(order_parts))
    if row_limit is not None:
        sql_lines.append(f"LIMIT {int(row_limit)}")

    return CompiledQuery(
        sql="\n".join(sql_lines),
        params=params,
        date_bucketed=looks_like_date_column(spec.dimension),
        grouped=bool(spec.dimension),
        multi_series=multi,
    )
