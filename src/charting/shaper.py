"""
Result shaping -- turns adapter rows into a rendering-ready chart.

  single series  one dataset; labels in first-appearance order, or
                 chronological when the dimension was month-bucketed
  multi series   one dataset per series over the union of all labels;
                 a series without a bucket gets 0 there

``YYYY-MM`` keys render as "January 2016".  Datasets are coloured from a fixed
six-colour palette by index and never filled, so line charts draw as lines.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.charting.spec import DataQuerySpec
from src.core.dates import is_month_key, render_month_key
from src.sources.base import AdapterResult
from src.core.logging import get_logger

logger = get_logger(__name__)

# (background, border) per dataset index
PALETTE: tuple[tuple[str, str], ...] = (
    ("rgba(54, 162, 235, 0.5)", "rgba(54, 162, 235, 1)"),
    ("rgba(255, 99, 132, 0.5)", "rgba(255, 99, 132, 1)"),
    ("rgba(75, 192, 192, 0.5)", "rgba(75, 192, 192, 1)"),
    ("rgba(255, 206, 86, 0.5)", "rgba(255, 206, 86, 1)"),
    ("rgba(153, 102, 255, 0.5)", "rgba(153, 102, 255, 1)"),
    ("rgba(255, 159, 64, 0.5)", "rgba(255, 159, 64, 1)"),
)
BORDER_WIDTH = 2
BLANK_LABEL = "(blank)"
SAMPLE_LABEL = "Sample rows"


@dataclass
class ChartDataset:
    label: str
    data: list[float]
    background_color: str
    border_color: str
    border_width: int = BORDER_WIDTH
    fill: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "data": list(self.data),
            "backgroundColor": self.background_color,
            "borderColor": self.border_color,
            "borderWidth": self.border_width,
            "fill": self.fill,
        }


@dataclass
class ChartResult:
    """Canonical chart payload; every dataset has one value per label."""

    labels: list[str] = field(default_factory=list)
    datasets: list[ChartDataset] = field(default_factory=list)

    def __post_init__(self) -> None:
        for ds in self.datasets:
            if len(ds.data) != len(self.labels):
                raise ValueError(
                    f"Dataset '{ds.label}' has {len(ds.data)} values for {len(self.labels)} labels"
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "datasets": [ds.to_dict() for ds in self.datasets],
        }


# ── Helpers ─────────────────────────────────────────────


def style_for(index: int) -> tuple[str, str]:
    return PALETTE[index % len(PALETTE)]


def render_label(key: str | None) -> str:
    if key is None:
        return BLANK_LABEL
    return render_month_key(str(key))


def measure_label(spec: DataQuerySpec) -> str:
    if spec.type == "count":
        return "Count"
    return spec.measure or ""


def single_series_label(spec: DataQuerySpec) -> str:
    if spec.type == "sum":
        return f"Sum of {spec.measure}"
    if spec.type == "average":
        return f"Average of {spec.measure}"
    return "Count"


def order_keys(keys: list[str | None], date_bucketed: bool) -> list[str | None]:
    """Deduplicate in first-appearance order; month keys sort first, by date."""
    unique = list(dict.fromkeys(keys))
    if not date_bucketed:
        return unique
    # Stable sort: unparsed keys keep their first-appearance order at the end
    return sorted(unique, key=lambda k: (0, k) if is_month_key(k) else (1, ""))


def _number(value: float, spec: DataQuerySpec) -> float:
    if spec.type == "count" and float(value).is_integer():
        return int(value)
    return value


def _dataset(label: str, data: list[float], index: int) -> ChartDataset:
    background, border = style_for(index)
    return ChartDataset(label=label, data=data, background_color=background, border_color=border)


# ── Shaping ─────────────────────────────────────────────


def shape_result(spec: DataQuerySpec, result: AdapterResult) -> ChartResult:
    """Build the canonical ``ChartResult`` for *result*."""
    if result.degraded:
        keys = order_keys([r.group_key for r in result.rows], False)
        values = {r.group_key: r.value for r in result.rows}
        chart = ChartResult(
            labels=[render_label(k) for k in keys],
            datasets=[_dataset(SAMPLE_LABEL, [_number(values[k], spec) for k in keys], 0)],
        )
        logger.info("Shaper | degraded | labels=%d", len(chart.labels))
        return chart

    keys = order_keys([r.group_key for r in result.rows], result.date_bucketed)
    labels = [render_label(k) for k in keys]

    if not (spec.multi_series and spec.series_dimension):
        values: dict[str | None, float] = {}
        for r in result.rows:
            values[r.group_key] = r.value
        data = [_number(values.get(k, 0), spec) for k in keys]
        chart = ChartResult(labels=labels, datasets=[_dataset(single_series_label(spec), data, 0)])
        logger.info("Shaper | single series | labels=%d", len(labels))
        return chart

    matrix: dict[str | None, dict[str | None, float]] = {}
    for r in result.rows:
        matrix.setdefault(r.series_key, {})[r.group_key] = r.value

    suffix = measure_label(spec)
    datasets = [
        _dataset(
            f"{render_label(series)} - {suffix}",
            [_number(buckets.get(k, 0), spec) for k in keys],
            i,
        )
        for i, (series, buckets) in enumerate(matrix.items())
    ]
    chart = ChartResult(labels=labels, datasets=datasets)
    logger.info("Shaper | multi series | labels=%d | series=%d", len(labels), len(datasets))
    return chart
