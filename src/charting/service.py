"""
Chart service -- orchestrates validate -> adapter -> shape.

One request runs one synchronous pipeline against exactly one source.
Errors propagate to the caller (the web layer) as ``ValidationError``,
``NotFoundError`` or ``ExecutionError``; nothing here retries.
"""
from __future__ import annotations

import time
from typing import Any

from src.charting.display_sql import build_display_sql
from src.charting.shaper import ChartResult, shape_result
from src.charting.spec import DataQuerySpec
from src.core.errors import NotFoundError
from src.governance.validator import parse_chart_request, validate_query_spec
from src.sources.base import SourceAdapter
from src.sources.descriptor import parse_source
from src.sources.registry import run_adapter
from src.core.logging import get_logger

logger = get_logger(__name__)


class ChartResponse:
    def __init__(
        self,
        spec: DataQuerySpec,
        chart: ChartResult,
        sql: str,
        chart_type: str = "bar",
        executed_sql: str | None = None,
        degraded: bool = False,
        explanation: str = "",
        latency_ms: int = 0,
    ):
        self.spec = spec
        self.chart = chart
        self.sql = sql
        self.chart_type = chart_type
        self.executed_sql = executed_sql
        self.degraded = degraded
        self.explanation = explanation
        self.latency_ms = latency_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "dataQuery": self.spec.to_json_dict(),
            "chartType": self.chart_type,
            "data": self.chart.to_dict(),
            "sql": self.sql,
            "executedSql": self.executed_sql,
            "degraded": self.degraded,
            "message": self.explanation,
            "latencyMs": self.latency_ms,
        }


def build_chart(
    raw_spec: dict[str, Any] | DataQuerySpec,
    source: Any,
    question: str | None = None,
    chart_type: str = "bar",
    explanation: str = "",
    adapter: SourceAdapter | None = None,
) -> ChartResponse:
    """End-to-end: query spec + source -> chart.

    Parameters
    ----------
    raw_spec : dict | DataQuerySpec
        The model's ``dataQuery`` (validated and repaired here) or an
        already-validated spec.
    source : dict | SourceDescriptor
        Where the data lives.
    question : str, optional
        The user's original question; feeds the multi-series repair.
    adapter : SourceAdapter, optional
        Override the adapter picked from ``source.kind``.

    Raises
    ------
    ValidationError, NotFoundError, ExecutionError
    """
    t0 = time.perf_counter()
    spec = raw_spec if isinstance(raw_spec, DataQuerySpec) else validate_query_spec(raw_spec, question)
    descriptor = parse_source(source)

    result = run_adapter(spec, descriptor, adapter=adapter)
    if result.is_empty:
        raise NotFoundError(
            "No data found for the query",
            kind="rows",
            spec=spec.to_json_dict(),
            source=descriptor.identifiers(),
        )

    chart = shape_result(spec, result)
    latency = int((time.perf_counter() - t0) * 1000)
    logger.info(
        "Chart built | kind=%s | labels=%d | datasets=%d | %d ms",
        descriptor.kind, len(chart.labels), len(chart.datasets), latency,
    )

    return ChartResponse(
        spec=spec,
        chart=chart,
        sql=build_display_sql(spec),
        chart_type=chart_type,
        executed_sql=result.executed_sql,
        degraded=result.degraded,
        explanation=explanation,
        latency_ms=latency,
    )


def generate_chart(
    payload: str | dict[str, Any],
    source: Any,
    question: str | None = None,
    adapter: SourceAdapter | None = None,
) -> ChartResponse:
    """Same as ``build_chart`` but starting from the model's full answer."""
    request = parse_chart_request(payload, question)
    return build_chart(
        request.data_query,
        source,
        question=question,
        chart_type=request.chart_type,
        explanation=request.explanation,
        adapter=adapter,
    )
