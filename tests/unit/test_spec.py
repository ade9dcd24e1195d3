"""
Unit tests -- DataQuerySpec, ChartRequest and source descriptors.
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from src.charting.spec import ChartRequest, DataQuerySpec, QueryFilter
from src.sources.descriptor import (
    EmbeddedSqlSource,
    InMemoryRowsSource,
    WarehouseSqlSource,
    parse_source,
)


def test_data_query_spec_defaults():
    spec = DataQuerySpec(type="count")
    assert spec.measure is None
    assert spec.multi_series is False
    assert spec.filters == []
    assert spec.group_columns == []


def test_data_query_spec_json_form():
    spec = DataQuerySpec.model_validate({
        "type": "sum",
        "measure": "Sales",
        "dimension": "OrderDate",
        "multiSeries": True,
        "seriesDimension": "State",
    })
    out = spec.to_json_dict()
    assert out["multiSeries"] is True
    assert out["seriesDimension"] == "State"
    assert "series_dimension" not in out


def test_series_dimension_ignored_when_not_multi():
    spec = DataQuerySpec(type="count", dimension="OrderDate", seriesDimension="State")
    assert spec.group_columns == ["OrderDate"]


def test_spec_is_immutable():
    spec = DataQuerySpec(type="count")
    with pytest.raises(PydanticValidationError):
        spec.type = "sum"


def test_filter_values():
    assert QueryFilter(column="State", operator="IN", value=["KY", "CA"]).values == ["KY", "CA"]
    assert QueryFilter(column="State", operator="=", value="KY").values == ["KY"]


def test_chart_request_aliases():
    request = ChartRequest.model_validate({"dataQuery": {"type": "count"}, "chartType": "line"})
    assert request.chart_type == "line"


# ── Source descriptors ───────────────────────────────────

def test_parse_in_memory_rows():
    source = parse_source({"kind": "in-memory-rows", "rows": [{"a": 1}]})
    assert isinstance(source, InMemoryRowsSource)
    assert source.identifiers()["row_count"] == 1


def test_in_memory_needs_rows_or_file():
    with pytest.raises(PydanticValidationError):
        parse_source({"kind": "in-memory-rows"})


def test_parse_embedded():
    source = parse_source({"kind": "embedded-sql", "file_path": "/data/sales.csv"})
    assert isinstance(source, EmbeddedSqlSource)


def test_warehouse_identifiers_hide_credentials():
    source = parse_source({
        "kind": "warehouse-sql",
        "project_id": "proj",
        "dataset_id": "sales",
        "table_id": "orders",
        "credentials": {"private_key": "secret"},
    })
    assert isinstance(source, WarehouseSqlSource)
    assert source.qualified_table == "proj.sales.orders"
    assert "credentials" not in source.identifiers()
    assert "secret" not in repr(source)


def test_unknown_kind_rejected():
    with pytest.raises(PydanticValidationError):
        parse_source({"kind": "spreadsheet-api"})


def test_parse_source_passes_models_through():
    source = EmbeddedSqlSource(file_path="x.csv")
    assert parse_source(source) is source
