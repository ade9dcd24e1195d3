"""
Adapter contract shared by every backend.

Each adapter turns a ``DataQuerySpec`` into ``AggregateRow``s: one or two
group keys plus one aggregated number.  The result shaper treats all
adapters alike.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from src.charting.spec import DataQuerySpec

TOTAL_KEY = "Total"


@dataclass(frozen=True)
class AggregateRow:
    group_key: str | None
    value: float
    series_key: str | None = None


@dataclass
class AdapterResult:
    """Rows from one adapter call plus how they were produced."""

    rows: list[AggregateRow] = field(default_factory=list)
    date_bucketed: bool = False
    executed_sql: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    degraded: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.rows


class SourceAdapter(ABC):
    """Executes a spec against one backend kind."""

    kind: str = ""

    @abstractmethod
    def execute(self, spec: DataQuerySpec, source: Any) -> AdapterResult:
        """Filter, group and aggregate; never shape."""
