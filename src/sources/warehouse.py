"""
Warehouse-SQL adapter -- aggregates a BigQuery table.

Before querying it confirms the dataset exists, then the table, so callers can
tell "dataset missing" from "table missing".  Queries bind every filter value
as a named parameter, drop zero-valued sums, cap the row count, and wait at
most ``query_timeout_seconds`` for the job.
"""
from __future__ import annotations

import json
from typing import Any, Callable

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import bigquery
from google.oauth2 import service_account

from src.charting.spec import DataQuerySpec
from src.core.config import get_settings
from src.core.errors import ExecutionError, NotFoundError
from src.sources.base import TOTAL_KEY, AdapterResult, AggregateRow, SourceAdapter
from src.sources.descriptor import KIND_WAREHOUSE_SQL, WarehouseSqlSource
from src.sources.dialects import WarehouseDialect
from src.sources.sql_generator import build_aggregate_query
from src.core.logging import get_logger

logger = get_logger(__name__)


def create_client(source: WarehouseSqlSource) -> bigquery.Client:
    """Build a BigQuery client from the descriptor's stored credentials.

    Without credentials the client falls back to application-default auth.
    """
    info: Any = source.credentials
    if isinstance(info, str):
        try:
            info = json.loads(info)
        except json.JSONDecodeError as exc:
            raise ExecutionError(
                "Invalid JSON credentials", source=source.identifiers(),
            ) from exc

    if not info:
        return bigquery.Client(project=source.project_id)

    credentials = service_account.Credentials.from_service_account_info(info)
    return bigquery.Client(project=source.project_id, credentials=credentials)


def query_parameters(params: dict[str, Any]) -> list[Any]:
    """Typed BigQuery parameters for the generator's bound values."""
    out: list[Any] = []
    for name, value in params.items():
        if isinstance(value, list):
            out.append(bigquery.ArrayQueryParameter(name, "STRING", [str(v) for v in value]))
        elif isinstance(value, float):
            out.append(bigquery.ScalarQueryParameter(name, "FLOAT64", value))
        else:
            out.append(bigquery.ScalarQueryParameter(name, "STRING", str(value)))
    return out


class WarehouseSqlAdapter(SourceAdapter):
    kind = KIND_WAREHOUSE_SQL

    def __init__(
        self,
        client_factory: Callable[[WarehouseSqlSource], Any] = create_client,
        row_limit: int | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.dialect = WarehouseDialect()
        self.client_factory = client_factory
        self.row_limit = row_limit if row_limit is not None else settings.warehouse_row_limit
        self.timeout = timeout if timeout is not None else settings.query_timeout_seconds

    def check_exists(self, client: Any, spec: DataQuerySpec, source: WarehouseSqlSource) -> None:
        """Fail fast when the dataset, then the table, is missing."""
        context = {"spec": spec.to_json_dict(), "source": source.identifiers()}
        try:
            client.get_dataset(f"{source.project_id}.{source.dataset_id}")
        except NotFound as exc:
            raise NotFoundError(
                f"Dataset '{source.dataset_id}' not found in project '{source.project_id}'.",
                kind="dataset", **context,
            ) from exc
        except GoogleAPIError as exc:
            raise ExecutionError(f"Failed to look up dataset: {exc}", **context) from exc

        try:
            client.get_table(source.qualified_table)
        except NotFound as exc:
            raise NotFoundError(
                f"Table '{source.table_id}' not found in dataset '{source.dataset_id}'.",
                kind="table", **context,
            ) from exc
        except GoogleAPIError as exc:
            raise ExecutionError(f"Failed to look up table: {exc}", **context) from exc

    def execute(self, spec: DataQuerySpec, source: WarehouseSqlSource) -> AdapterResult:
        client = self.client_factory(source)
        self.check_exists(client, spec, source)

        table_sql = self.dialect.qualified_table(source.project_id, source.dataset_id, source.table_id)
        query = build_aggregate_query(
            spec,
            table_sql,
            self.dialect,
            row_limit=self.row_limit,
            exclude_zero_sums=True,
        )
        job_config = bigquery.QueryJobConfig(query_parameters=query_parameters(query.params))

        try:
            job = client.query(query.sql, job_config=job_config)
            records = [dict(row.items()) for row in job.result(timeout=self.timeout)]
        except (GoogleAPIError, TimeoutError) as exc:
            logger.exception("Warehouse query failed  table=%s", source.qualified_table)
            raise ExecutionError(
                f"Failed to execute query: {exc}",
                sql=query.sql,
                spec=spec.to_json_dict(),
                source=source.identifiers(),
            ) from exc

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
