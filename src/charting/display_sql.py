"""
Human-readable SQL for display next to a chart.

Rebuilt from the spec alone, so it reads the same whatever backend ran the
query; the statement an adapter actually executed is reported separately.
Values are inlined as quoted literals here because this text is never run.
"""
from __future__ import annotations

from typing import Any

from src.charting.spec import DataQuerySpec, QueryFilter

DISPLAY_TABLE = "data"


def _literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


def _condition(f: QueryFilter) -> str:
    if f.operator == "IN":
        return f"{f.column} IN ({', '.join(_literal(v) for v in f.values)})"
    return f"{f.column} {f.operator} {_literal(f.value)}"


def build_display_sql(spec: DataQuerySpec) -> str:
    """``SELECT SUM(Sales), OrderDate FROM data WHERE ... GROUP BY OrderDate``"""
    if spec.type == "count":
        select = ["COUNT(*)"]
    elif spec.type == "sum":
        select = [f"SUM({spec.measure})"]
    else:
        select = [f"AVG({spec.measure})"]
    select.extend(spec.group_columns)

    sql = f"SELECT {', '.join(select)} FROM {DISPLAY_TABLE}"
    if spec.filters:
        sql += " WHERE " + " AND ".join(_condition(f) for f in spec.filters)
    if spec.group_columns:
        sql += f" GROUP BY {', '.join(spec.group_columns)}"
    return sql
