"""
Embedded-SQL adapter -- aggregates a CSV / Parquet / JSON file with DuckDB.

This is the only adapter that degrades instead of failing: when the
aggregate query errors, it counts a sample of the file's rows and returns that
single ``Sample`` bucket flagged ``degraded``.  Only when the sample count also
fails is the original error raised.
"""
from __future__ import annotations

from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from src.charting.spec import DataQuerySpec
from src.core.config import get_settings
from src.core.errors import ExecutionError, NotFoundError
from src.db.executor import execute_query
from src.sources.base import TOTAL_KEY, AdapterResult, AggregateRow, SourceAdapter
from src.sources.descriptor import KIND_EMBEDDED_SQL, EmbeddedSqlSource
from src.sources.dialects import EmbeddedDialect
from src.sources.sql_generator import build_aggregate_query
from src.core.logging import get_logger

logger = get_logger(__name__)

SAMPLE_KEY = "Sample"

# Delimited files load every cell as text; expressions cast per use
_READERS: dict[str, str] = {
    ".csv": "read_csv_auto({path}, header=true, all_varchar=true)",
    ".tsv": "read_csv_auto({path}, header=true, all_varchar=true)",
    ".txt": "read_csv_auto({path}, header=true, all_varchar=true)",
    ".parquet": "read_parquet({path})",
    ".pq": "read_parquet({path})",
    ".json": "read_json_auto({path})",
}


def reader_sql(path: Path) -> str:
    """DuckDB table function reading *path*, chosen by file extension."""
    template = _READERS.get(path.suffix.lower())
    if template is None:
        raise ValueError(f"Unsupported file format: {path.suffix or '(none)'}")
    # Forward slashes keep Windows paths valid inside the SQL literal
    literal = "'" + path.as_posix().replace("'", "''") + "'"
    return template.format(path=literal)


class EmbeddedSqlAdapter(SourceAdapter):
    kind = KIND_EMBEDDED_SQL

    def __init__(self, sample_rows: int | None = None):
        self.dialect = EmbeddedDialect()
        self.sample_rows = sample_rows if sample_rows is not None else get_settings().embedded_sample_rows

    def execute(self, spec: DataQuerySpec, source: EmbeddedSqlSource) -> AdapterResult:
        path = Path(source.file_path)
        if not path.is_file():
            raise NotFoundError(
                f"File not found: {path}", kind="file",
                spec=spec.to_json_dict(), source=source.identifiers(),
            )
        try:
            table_sql = reader_sql(path)
        except ValueError as exc:
            raise ExecutionError(
                str(exc), spec=spec.to_json_dict(), source=source.identifiers(),
            ) from exc

        query = build_aggregate_query(spec, table_sql, self.dialect)
        try:
            records = execute_query(query.sql, query.params)
        except SQLAlchemyError as exc:
            logger.warning("Embedded query failed, degrading to sample count: %s", exc)
            return self._degrade(spec, source, table_sql, query.sql, exc)

        rows = [
            AggregateRow(
                group_key=rec.get("group_key") if query.grouped else TOTAL_KEY,
                series_key=rec.get("series_key") if query.multi_series else None,
                value=float(rec.get("value") or 0),
            )
            for rec in records
        ]
        return AdapterResult(
            rows=rows,
            date_bucketed=query.date_bucketed,
            executed_sql=query.sql,
            params=query.params,
        )

    def _degrade(
        self,
        spec: DataQuerySpec,
        source: EmbeddedSqlSource,
        table_sql: str,
        failed_sql: str,
        cause: Exception,
    ) -> AdapterResult:
        fallback_sql = (
            f"SELECT COUNT(*) AS value FROM "
            f"(SELECT * FROM {table_sql} LIMIT {int(self.sample_rows)}) AS sample"
        )
        try:
            records = execute_query(fallback_sql)
        except SQLAlchemyError as exc:
            logger.exception("Embedded fallback query failed")
            raise ExecutionError(
                f"Failed to execute query: {cause}",
                sql=failed_sql,
                spec=spec.to_json_dict(),
                source=source.identifiers(),
            ) from exc

        count = float(records[0]["value"]) if records else 0.0
        return AdapterResult(
            rows=[AggregateRow(group_key=SAMPLE_KEY, value=count)],
            executed_sql=fallback_sql,
            degraded=True,
        )
