"""
SourceDescriptor -- where and how a dataset is read.

A tagged union on ``kind``; loaded read-only by the persistence layer and
never mutated here.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

KIND_IN_MEMORY = "in-memory-rows"
KIND_EMBEDDED_SQL = "embedded-sql"
KIND_WAREHOUSE_SQL = "warehouse-sql"


class InMemoryRowsSource(BaseModel):
    """Rows already materialised, or a spreadsheet / CSV file to load whole."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["in-memory-rows"] = KIND_IN_MEMORY
    rows: list[dict[str, Any]] | None = None
    file_path: str | None = None
    sheet_name: str | None = None

    @model_validator(mode="after")
    def _needs_rows_or_file(self) -> "InMemoryRowsSource":
        if self.rows is None and not self.file_path:
            raise ValueError("in-memory-rows source needs either 'rows' or 'file_path'")
        return self

    def identifiers(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "file_path": self.file_path,
            "sheet_name": self.sheet_name,
            "row_count": len(self.rows) if self.rows is not None else None,
        }


class EmbeddedSqlSource(BaseModel):
    """A CSV / Parquet / JSON file queried through the embedded engine."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["embedded-sql"] = KIND_EMBEDDED_SQL
    file_path: str

    def identifiers(self) -> dict[str, Any]:
        return {"kind": self.kind, "file_path": self.file_path}


class WarehouseSqlSource(BaseModel):
    """A warehouse table addressed as project.dataset.table."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["warehouse-sql"] = KIND_WAREHOUSE_SQL
    project_id: str
    dataset_id: str
    table_id: str
    credentials: str | dict[str, Any] | None = Field(None, repr=False)

    @property
    def qualified_table(self) -> str:
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"

    def identifiers(self) -> dict[str, Any]:
        # Credentials never leave the descriptor
        return {
            "kind": self.kind,
            "project_id": self.project_id,
            "dataset_id": self.dataset_id,
            "table_id": self.table_id,
        }


SourceDescriptor = Annotated[
    Union[InMemoryRowsSource, EmbeddedSqlSource, WarehouseSqlSource],
    Field(discriminator="kind"),
]

_SOURCE_ADAPTER: TypeAdapter = TypeAdapter(SourceDescriptor)


def parse_source(raw: dict[str, Any] | BaseModel) -> InMemoryRowsSource | EmbeddedSqlSource | WarehouseSqlSource:
    """Build a descriptor from the persistence layer's record."""
    if isinstance(raw, (InMemoryRowsSource, EmbeddedSqlSource, WarehouseSqlSource)):
        return raw
    return _SOURCE_ADAPTER.validate_python(raw)
