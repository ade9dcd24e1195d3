"""
In-memory rows adapter -- filters and aggregates rows held in Python.

Rows come straight from the descriptor or are loaded whole from a spreadsheet
or CSV file with pandas (every cell kept as a Python object, blanks as None).

Filter rules (all filters ANDed):
  IN      case-insensitive membership
  LIKE    case-insensitive substring (surrounding % wildcards ignored)
  dates   columns whose name looks like a date compare day by day
  =       case-insensitive string equality
  others  both sides parsed as floats; unparsable never matches
"""
from __future__ import annotations

import math
import operator as op
from pathlib import Path
from typing import Any, Callable

import pandas as pd

from src.charting.spec import DataQuerySpec, QueryFilter
from src.core.config import get_settings
from src.core.dates import compare_dates, month_key, parse_date
from src.core.errors import ExecutionError, NotFoundError
from src.governance.heuristics import looks_like_date_column
from src.sources.base import TOTAL_KEY, AdapterResult, AggregateRow, SourceAdapter
from src.sources.descriptor import KIND_IN_MEMORY, InMemoryRowsSource
from src.core.logging import get_logger

logger = get_logger(__name__)

Row = dict[str, Any]
Predicate = Callable[[Row], bool]

_EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
_CSV_SUFFIXES = {".csv", ".txt"}

_NUMERIC_OPS: dict[str, Callable[[float, float], bool]] = {
    ">": op.gt,
    "<": op.lt,
    ">=": op.ge,
    "<=": op.le,
}


def to_number(value: Any) -> float | None:
    """Parse *value* as a float; None when it isn't a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


# ── Loading ─────────────────────────────────────────────


def _frame_to_rows(df: pd.DataFrame) -> list[Row]:
    df.columns = [str(c) for c in df.columns]
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def load_rows(source: InMemoryRowsSource, max_rows: int | None = None) -> list[Row]:
    """Materialise the rows behind *source*.

    Raises
    ------
    NotFoundError
        The file does not exist.
    ExecutionError
        The file exists but cannot be read.
    """
    if source.rows is not None:
        return list(source.rows)

    path = Path(source.file_path or "")
    if not path.is_file():
        raise NotFoundError(
            f"File not found: {path}", kind="file", source=source.identifiers(),
        )

    suffix = path.suffix.lower()
    try:
        if suffix in _EXCEL_SUFFIXES:
            df = pd.read_excel(
                path,
                sheet_name=source.sheet_name or 0,
                dtype=object,
                nrows=max_rows,
            )
        elif suffix in _CSV_SUFFIXES:
            df = pd.read_csv(path, dtype=object, nrows=max_rows, skipinitialspace=True)
        else:
            raise ExecutionError(
                f"Unsupported file format: {suffix or '(none)'}",
                source=source.identifiers(),
            )
    except (OSError, ValueError, ImportError) as exc:
        raise ExecutionError(
            f"Failed to read {path.name}: {exc}", source=source.identifiers(),
        ) from exc

    return _frame_to_rows(df)


# ── Filtering ───────────────────────────────────────────


def compile_filter(f: QueryFilter) -> Predicate:
    """Build a row predicate for one filter."""
    column = f.column

    if f.operator == "IN":
        wanted = {str(v).lower() for v in f.values if v is not None}
        return lambda row: row.get(column) is not None and str(row[column]).lower() in wanted

    if f.operator == "LIKE":
        needle = str(f.value).strip("%").lower()
        return lambda row: row.get(column) is not None and needle in str(row[column]).lower()

    if looks_like_date_column(column):
        target = parse_date(f.value)
        operator = f.operator
        return lambda row: compare_dates(parse_date(row.get(column)), target, operator)

    if f.operator == "=":
        expected = str(f.value).lower()
        return lambda row: row.get(column) is not None and str(row[column]).lower() == expected

    compare = _NUMERIC_OPS[f.operator]
    threshold = to_number(f.value)

    def numeric(row: Row) -> bool:
        value = to_number(row.get(column))
        if value is None or threshold is None:
            return False
        return compare(value, threshold)

    return numeric


def apply_filters(rows: list[Row], filters: list[QueryFilter]) -> list[Row]:
    predicates = [compile_filter(f) for f in filters]
    if not predicates:
        return rows
    return [row for row in rows if all(p(row) for p in predicates)]


# ── Grouping & aggregation ──────────────────────────────


def group_key(row: Row, column: str) -> str | None:
    """Bucket key for *row*: ``YYYY-MM`` for date-like columns, else the text."""
    raw = row.get(column)
    if looks_like_date_column(column):
        parsed = parse_date(raw)
        if parsed is not None:
            return month_key(parsed)
    return None if raw is None else str(raw)


def aggregate(rows: list[Row], spec: DataQuerySpec) -> list[AggregateRow]:
    """Group *rows* (first-appearance order) and aggregate each group."""
    if not rows:
        return []

    multi = bool(spec.multi_series and spec.series_dimension)
    sums: dict[tuple[str | None, str | None], float] = {}
    counts: dict[tuple[str | None, str | None], int] = {}

    for row in rows:
        g = group_key(row, spec.dimension) if spec.dimension else TOTAL_KEY
        s = group_key(row, spec.series_dimension) if multi and spec.series_dimension else None
        key = (g, s)
        if key not in counts:
            counts[key] = 0
            sums[key] = 0.0
        counts[key] += 1
        if spec.type != "count":
            sums[key] += to_number(row.get(spec.measure or "")) or 0.0

    result: list[AggregateRow] = []
    for (g, s), n in counts.items():
        if spec.type == "count":
            value = float(n)
        elif spec.type == "sum":
            value = sums[(g, s)]
        else:
            value = sums[(g, s)] / n
        result.append(AggregateRow(group_key=g, series_key=s, value=value))
    return result


class InMemoryRowsAdapter(SourceAdapter):
    kind = KIND_IN_MEMORY

    def __init__(self, max_rows: int | None = None):
        self.max_rows = max_rows if max_rows is not None else get_settings().in_memory_max_rows

    def execute(self, spec: DataQuerySpec, source: InMemoryRowsSource) -> AdapterResult:
        rows = load_rows(source, self.max_rows)
        filtered = apply_filters(rows, spec.filters)
        logger.info("In-memory rows: %d loaded, %d after filters", len(rows), len(filtered))
        return AdapterResult(
            rows=aggregate(filtered, spec),
            date_bucketed=looks_like_date_column(spec.dimension),
        )
