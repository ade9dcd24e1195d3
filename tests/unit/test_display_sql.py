"""
Unit tests -- display SQL rebuilt from the query spec.
"""
from src.charting.display_sql import build_display_sql
from src.charting.spec import DataQuerySpec


def _sql(**spec) -> str:
    return build_display_sql(DataQuerySpec.model_validate(spec))


def test_count_without_dimension():
    assert _sql(type="count") == "SELECT COUNT(*) FROM data"


def test_sum_grouped():
    assert _sql(type="sum", measure="Sales", dimension="OrderDate") == (
        "SELECT SUM(Sales), OrderDate FROM data GROUP BY OrderDate"
    )


def test_average_multi_series():
    sql = _sql(
        type="average", measure="Sales", dimension="OrderDate",
        multiSeries=True, seriesDimension="State",
    )
    assert sql == "SELECT AVG(Sales), OrderDate, State FROM data GROUP BY OrderDate, State"


def test_filters_rendered_as_literals():
    sql = _sql(
        type="count",
        filters=[
            {"column": "State", "operator": "IN", "value": ["Kentucky", "O'Brien"]},
            {"column": "Sales", "operator": ">", "value": 10},
        ],
    )
    assert "WHERE State IN ('Kentucky', 'O''Brien') AND Sales > 10" in sql
