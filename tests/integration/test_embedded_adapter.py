"""
Integration tests — embedded-SQL adapter over real files with DuckDB.

Skipped when the duckdb / duckdb-engine packages are not installed.
"""
from __future__ import annotations

import csv

import pytest
from sqlalchemy import text

# ── Guard: skip all tests if the engine is unavailable ───
try:
    from src.db.connection import get_engine

    with get_engine().connect() as _conn:
        _conn.execute(text("SELECT 1"))
    DB_AVAILABLE = True
except Exception:
    DB_AVAILABLE = False

pytestmark = pytest.mark.skipif(not DB_AVAILABLE, reason="DuckDB engine not available")

from src.charting.service import build_chart
from src.charting.spec import DataQuerySpec
from src.core.errors import ExecutionError, NotFoundError
from src.db.connection import dispose_engine
from src.sources.descriptor import EmbeddedSqlSource
from src.sources.embedded import SAMPLE_KEY, EmbeddedSqlAdapter

CSV = """OrderDate,State,Sales
2016-01-15,Kentucky,100
2016-02-10,Kentucky,50
2016-01-20,California,200
2016-03-03,California,30
2016-01-05,Texas,999
"""

MIXED_DATES_CSV = """OrderDate,State,Sales
15/01/2016,Kentucky,100
2016-01-20,Kentucky,20
10/02/2016,Kentucky,5
"""


@pytest.fixture(scope="module", autouse=True)
def _engine():
    yield
    dispose_engine()


@pytest.fixture()
def sales_csv(tmp_path):
    path = tmp_path / "sales.csv"
    path.write_text(CSV)
    return str(path)


def _spec(**overrides) -> DataQuerySpec:
    base = {
        "type": "sum",
        "measure": "Sales",
        "dimension": "OrderDate",
        "multiSeries": True,
        "seriesDimension": "State",
        "filters": [{"column": "State", "operator": "IN", "value": ["Kentucky", "California"]}],
    }
    base.update(overrides)
    return DataQuerySpec.model_validate(base)


def _run(spec, path):
    return EmbeddedSqlAdapter(sample_rows=100).execute(spec, EmbeddedSqlSource(file_path=path))


# ── Aggregation ─────────────────────────────────────────

def test_multi_series_by_month(sales_csv):
    result = _run(_spec(), sales_csv)
    got = {(r.group_key, r.series_key): r.value for r in result.rows}
    assert got == {
        ("2016-01", "Kentucky"): 100.0,
        ("2016-01", "California"): 200.0,
        ("2016-02", "Kentucky"): 50.0,
        ("2016-03", "California"): 30.0,
    }
    assert result.date_bucketed is True
    assert result.degraded is False
    assert "read_csv_auto" in result.executed_sql


PARITY_CASES = {
    "happy_path": (CSV, {}),
    "serial_dates": (
        "OrderDate,Sales\n42385,10\n42420,20\n42386,5\n",
        {"multiSeries": False, "filters": []},
    ),
    "slash_formats": (
        "OrderDate,Sales\n15/01/2016,1\n2016/01/20,2\n10/02/16,4\n2016-03-01T10:00:00,8\n",
        {"multiSeries": False, "filters": []},
    ),
    "series_only": (
        "State,Sales\nKentucky,1\nCalifornia,2\nKentucky,3\n",
        {"dimension": None, "filters": []},
    ),
    "unparsable_date_cell": (
        "OrderDate,Sales\n2016-01-15,1\nsoon,2\n2016-02-01,4\n",
        {"multiSeries": False, "filters": []},
    ),
    "numeric_group_keys": (
        "Year,Sales\n2016,1\n2017,2\n2016,3\n",
        {"dimension": "Year", "multiSeries": False, "filters": []},
    ),
    "numeric_month_keys": (
        "Month,Sales\n1,10\n2,20\n3,30\n",
        {"dimension": "Month", "multiSeries": False, "filters": []},
    ),
    "unparsable_measure_cell": (
        "State,Sales\nCalifornia,5\nKentucky,100\nKentucky,n/a\n",
        {"type": "average", "dimension": "State", "multiSeries": False, "filters": []},
    ),
}


@pytest.mark.parametrize("case", sorted(PARITY_CASES))
def test_matches_in_memory_chart(tmp_path, case):
    content, overrides = PARITY_CASES[case]
    path = tmp_path / f"{case}.csv"
    path.write_text(content)
    with open(path, newline="") as fh:
        rows = list(csv.DictReader(fh))

    spec = _spec(**overrides)
    embedded = build_chart(spec, {"kind": "embedded-sql", "file_path": str(path)}).chart
    in_memory = build_chart(spec, {"kind": "in-memory-rows", "rows": rows}).chart
    assert embedded.labels == in_memory.labels
    assert {ds.label: ds.data for ds in embedded.datasets} == {
        ds.label: ds.data for ds in in_memory.datasets
    }


@pytest.mark.parametrize(
    "case, labels",
    [
        ("serial_dates", ["January 2016", "February 2016"]),
        ("slash_formats", ["January 2016", "February 2016", "March 2016"]),
        ("series_only", ["Total"]),
        ("unparsable_date_cell", ["January 2016", "February 2016", "soon"]),
        ("numeric_group_keys", ["2016", "2017"]),
        ("numeric_month_keys", ["1", "2", "3"]),
    ],
)
def test_embedded_chart_labels(tmp_path, case, labels):
    content, overrides = PARITY_CASES[case]
    path = tmp_path / f"{case}.csv"
    path.write_text(content)
    chart = build_chart(_spec(**overrides), {"kind": "embedded-sql", "file_path": str(path)}).chart
    assert chart.labels == labels


def test_unparsable_measure_cell_counts_as_zero(tmp_path):
    content, overrides = PARITY_CASES["unparsable_measure_cell"]
    path = tmp_path / "measure.csv"
    path.write_text(content)
    got = {r.group_key: r.value for r in _run(_spec(**overrides), str(path)).rows}
    assert got == {"California": 5.0, "Kentucky": 50.0}


def test_count_without_dimension(sales_csv):
    result = _run(_spec(type="count", measure=None, dimension=None, multiSeries=False, filters=[]), sales_csv)
    assert [(r.group_key, r.value) for r in result.rows] == [("Total", 5.0)]


def test_numeric_and_date_filters(sales_csv):
    spec = _spec(
        type="count", measure=None, dimension="State", multiSeries=False,
        filters=[
            {"column": "Sales", "operator": "<", "value": "500"},
            {"column": "OrderDate", "operator": ">=", "value": "01/02/2016"},
        ],
    )
    got = {r.group_key: r.value for r in _run(spec, sales_csv).rows}
    assert got == {"Kentucky": 1.0, "California": 1.0}


def test_mixed_date_formats_bucket_together(tmp_path):
    path = tmp_path / "mixed.csv"
    path.write_text(MIXED_DATES_CSV)
    spec = _spec(multiSeries=False, filters=[])
    got = {r.group_key: r.value for r in _run(spec, str(path)).rows}
    assert got == {"2016-01": 120.0, "2016-02": 5.0}


def test_zero_matches_gives_no_rows(sales_csv):
    spec = _spec(dimension=None, multiSeries=False, filters=[{"column": "State", "operator": "=", "value": "Nowhere"}])
    assert _run(spec, sales_csv).is_empty


# ── Failures ────────────────────────────────────────────

def test_missing_file(tmp_path):
    with pytest.raises(NotFoundError) as exc_info:
        _run(_spec(), str(tmp_path / "missing.csv"))
    assert exc_info.value.kind == "file"


def test_unsupported_format(tmp_path):
    path = tmp_path / "sales.xlsx"
    path.write_bytes(b"PK")
    with pytest.raises(ExecutionError):
        _run(_spec(), str(path))


def test_failed_query_degrades_to_sample(sales_csv):
    result = _run(_spec(measure="NoSuchColumn", multiSeries=False, filters=[]), sales_csv)
    assert result.degraded is True
    assert [(r.group_key, r.value) for r in result.rows] == [(SAMPLE_KEY, 5.0)]
    assert "LIMIT 100" in result.executed_sql


def test_degraded_chart(sales_csv):
    response = build_chart(
        _spec(measure="NoSuchColumn", multiSeries=False, filters=[]),
        {"kind": "embedded-sql", "file_path": sales_csv},
    )
    assert response.degraded is True
    assert response.chart.labels == ["Sample"]
    assert response.chart.datasets[0].label == "Sample rows"
