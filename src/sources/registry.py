"""
Adapter dispatch -- a plain lookup on ``SourceDescriptor.kind``.
"""
from __future__ import annotations

import time
from typing import Any, Callable

from src.charting.spec import DataQuerySpec
from src.core.errors import ChartQueryError
from src.sources.base import AdapterResult, SourceAdapter
from src.sources.descriptor import (
    KIND_EMBEDDED_SQL,
    KIND_IN_MEMORY,
    KIND_WAREHOUSE_SQL,
    parse_source,
)
from src.sources.embedded import EmbeddedSqlAdapter
from src.sources.in_memory import InMemoryRowsAdapter
from src.sources.warehouse import WarehouseSqlAdapter
from src.core.logging import get_logger

logger = get_logger(__name__)

_ADAPTERS: dict[str, Callable[[], SourceAdapter]] = {
    KIND_IN_MEMORY: InMemoryRowsAdapter,
    KIND_EMBEDDED_SQL: EmbeddedSqlAdapter,
    KIND_WAREHOUSE_SQL: WarehouseSqlAdapter,
}


def get_adapter(kind: str) -> SourceAdapter:
    """Return a fresh adapter for *kind*."""
    factory = _ADAPTERS.get(kind)
    if factory is None:
        raise ValueError(
            f"Source kind '{kind}' is not supported.  "
            f"Choose from: {', '.join(_ADAPTERS)}"
        )
    return factory()


def run_adapter(
    spec: DataQuerySpec,
    source: Any,
    adapter: SourceAdapter | None = None,
) -> AdapterResult:
    """Execute *spec* against *source* with the adapter for its kind."""
    source = parse_source(source)
    adapter = adapter or get_adapter(source.kind)

    logger.info("Adapter[%s] start | spec=%s", source.kind, spec.model_dump_json(by_alias=True))
    t0 = time.perf_counter()
    try:
        result = adapter.execute(spec, source)
    except ChartQueryError as exc:
        logger.warning("Adapter[%s] failed | %s: %s", source.kind, type(exc).__name__, exc.message)
        raise
    elapsed_ms = int((time.perf_counter() - t0) * 1000)
    logger.info(
        "Adapter[%s] done | rows=%d | degraded=%s | %d ms",
        source.kind, len(result.rows), result.degraded, elapsed_ms,
    )
    return result
