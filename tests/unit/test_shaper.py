"""
Unit tests -- result shaping into labels + datasets.
"""
import json

import pytest

from src.charting.shaper import (
    BLANK_LABEL,
    BORDER_WIDTH,
    PALETTE,
    SAMPLE_LABEL,
    ChartDataset,
    ChartResult,
    order_keys,
    shape_result,
)
from src.charting.spec import DataQuerySpec
from src.sources.base import AdapterResult, AggregateRow


def _spec(**overrides) -> DataQuerySpec:
    base = {"type": "sum", "measure": "Sales", "dimension": "OrderDate"}
    base.update(overrides)
    return DataQuerySpec.model_validate(base)


def _multi_spec(**overrides) -> DataQuerySpec:
    return _spec(multiSeries=True, seriesDimension="State", **overrides)


# ── Single series ───────────────────────────────────────

def test_single_series_chronological():
    result = AdapterResult(
        rows=[
            AggregateRow("2016-03", 30.0),
            AggregateRow("2016-01", 100.0),
            AggregateRow("2016-02", 50.0),
        ],
        date_bucketed=True,
    )
    chart = shape_result(_spec(), result)
    assert chart.labels == ["January 2016", "February 2016", "March 2016"]
    assert chart.datasets[0].data == [100.0, 50.0, 30.0]
    assert chart.datasets[0].label == "Sum of Sales"


def test_single_series_first_appearance_order():
    result = AdapterResult(rows=[AggregateRow("Texas", 3.0), AggregateRow("Alabama", 1.0)])
    chart = shape_result(_spec(dimension="State"), result)
    assert chart.labels == ["Texas", "Alabama"]


def test_single_series_labels():
    rows = AdapterResult(rows=[AggregateRow("Total", 2.0)])
    assert shape_result(_spec(type="average"), rows).datasets[0].label == "Average of Sales"
    assert shape_result(_spec(type="count", measure=None), rows).datasets[0].label == "Count"


def test_count_values_are_integers():
    chart = shape_result(_spec(type="count", measure=None), AdapterResult(rows=[AggregateRow("Total", 4.0)]))
    assert chart.datasets[0].data == [4]
    assert isinstance(chart.datasets[0].data[0], int)


def test_null_key_renders_blank():
    chart = shape_result(_spec(dimension="State"), AdapterResult(rows=[AggregateRow(None, 1.0)]))
    assert chart.labels == [BLANK_LABEL]


def test_unparsed_keys_sort_after_months():
    assert order_keys(["garbage", "2016-02", "2016-01", "2016-02"], True) == ["2016-01", "2016-02", "garbage"]


# ── Multi series ────────────────────────────────────────

def test_multi_series_union_of_labels():
    result = AdapterResult(
        rows=[
            AggregateRow("2016-01", 1.0, "A"),
            AggregateRow("2016-02", 2.0, "A"),
            AggregateRow("2016-02", 3.0, "B"),
            AggregateRow("2016-03", 4.0, "B"),
        ],
        date_bucketed=True,
    )
    chart = shape_result(_multi_spec(), result)
    assert chart.labels == ["January 2016", "February 2016", "March 2016"]
    by_label = {ds.label: ds.data for ds in chart.datasets}
    assert by_label["A - Sales"] == [1.0, 2.0, 0]
    assert by_label["B - Sales"] == [0, 3.0, 4.0]


def test_multi_series_count_suffix():
    result = AdapterResult(rows=[AggregateRow("2016-01", 2.0, "A")], date_bucketed=True)
    chart = shape_result(_multi_spec(type="count", measure=None), result)
    assert chart.datasets[0].label == "A - Count"


def test_palette_cycles():
    rows = [AggregateRow("2016-01", 1.0, f"S{i}") for i in range(len(PALETTE) + 1)]
    chart = shape_result(_multi_spec(), AdapterResult(rows=rows, date_bucketed=True))
    assert len(chart.datasets) == len(PALETTE) + 1
    assert chart.datasets[0].background_color == PALETTE[0][0]
    assert chart.datasets[1].border_color == PALETTE[1][1]
    assert chart.datasets[-1].background_color == chart.datasets[0].background_color


def test_datasets_never_filled():
    result = AdapterResult(rows=[AggregateRow("2016-01", 1.0, "A")], date_bucketed=True)
    out = shape_result(_multi_spec(), result).to_dict()
    ds = out["datasets"][0]
    assert ds["fill"] is False
    assert ds["borderWidth"] == BORDER_WIDTH
    assert ds["backgroundColor"].startswith("rgba(")


# ── Degraded ────────────────────────────────────────────

def test_degraded_sample_bucket():
    result = AdapterResult(rows=[AggregateRow("Sample", 100.0)], degraded=True)
    chart = shape_result(_spec(), result)
    assert chart.labels == ["Sample"]
    assert chart.datasets[0].label == SAMPLE_LABEL
    assert chart.datasets[0].data == [100.0]


# ── Invariant ───────────────────────────────────────────

def test_length_mismatch_rejected():
    with pytest.raises(ValueError):
        ChartResult(
            labels=["a", "b"],
            datasets=[ChartDataset(label="x", data=[1.0], background_color="", border_color="")],
        )


def test_to_dict_is_json_serialisable():
    result = AdapterResult(rows=[AggregateRow("2016-01", 1.5, "A")], date_bucketed=True)
    payload = json.loads(json.dumps(shape_result(_multi_spec(), result).to_dict()))
    assert len(payload["labels"]) == len(payload["datasets"][0]["data"])
