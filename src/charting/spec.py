"""
DataQuerySpec -- the structured intermediate representation between
natural language and an executable aggregation.
"""
from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

QUERY_TYPES = ("count", "sum", "average")
OPERATORS = ("=", ">=", "<=", ">", "<", "IN", "LIKE")
CHART_TYPES = ("bar", "line", "pie", "scatter", "radar")

Scalar = Union[str, int, float, bool, None]


class QueryFilter(BaseModel):
    """One predicate; filters in a spec are ANDed together."""

    model_config = ConfigDict(frozen=True)

    column: str
    operator: Literal["=", ">=", "<=", ">", "<", "IN", "LIKE"]
    value: Union[list[Scalar], Scalar] = None

    @property
    def values(self) -> list[Scalar]:
        """The filter value as a list (IN filters carry several)."""
        if isinstance(self.value, list):
            return list(self.value)
        return [self.value]


class DataQuerySpec(BaseModel):
    """Backend-independent description of one aggregation request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["count", "sum", "average"]
    measure: str | None = Field(None, description="Column to aggregate (sum/average)")
    dimension: str | None = Field(None, description="Group-by column")
    multi_series: bool = Field(False, alias="multiSeries")
    series_dimension: str | None = Field(None, alias="seriesDimension")
    filters: list[QueryFilter] = Field(default_factory=list)

    @property
    def group_columns(self) -> list[str]:
        cols: list[str] = []
        if self.dimension:
            cols.append(self.dimension)
        if self.multi_series and self.series_dimension:
            cols.append(self.series_dimension)
        return cols

    def to_json_dict(self) -> dict[str, Any]:
        """camelCase JSON form, as received from the model."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChartRequest(BaseModel):
    """The model's whole answer: what to compute and how to draw it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    data_query: DataQuerySpec = Field(..., alias="dataQuery")
    chart_type: Literal["bar", "line", "pie", "scatter", "radar"] = Field("bar", alias="chartType")
    explanation: str = ""
