"""Timing and logging wrapper around database adapters."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from dbxray.database.base import DatabaseAdapter
from dbxray.database.models import QueryResult, Table
from dbxray.logging.service import OperationContext, OperationLogService, get_operation_log_service

logger = logging.getLogger(__name__)

# Longest query text included in a log line
MAX_LOGGED_QUERY = 200


def _format_fields(fields: Dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


def _shorten(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > MAX_LOGGED_QUERY:
        return text[:MAX_LOGGED_QUERY] + "..."
    return text


class ObservedClient:
    """Adapter wrapper that times and logs each operation.

    Exposes the same operations as the wrapped adapter. Results and
    exceptions pass through unchanged; the wrapper only records how long
    each call took and whether it failed.
    """

    def __init__(self, adapter: DatabaseAdapter, log_service: Optional[OperationLogService] = None):
        self.adapter = adapter
        self.db_type = adapter.DB_TYPE.value
        self._log_service = log_service

    @property
    def log_service(self) -> OperationLogService:
        if self._log_service is None:
            self._log_service = get_operation_log_service()
        return self._log_service

    def _observe(
        self,
        operation: str,
        label: str,
        target: Optional[str],
        fields: Dict[str, Any],
        call: Callable[[], Any],
        summarize: Optional[Callable[[OperationContext, Any], None]] = None,
    ) -> Any:
        start_time = time.time()
        with self.log_service.log_operation(self.db_type, operation, target=target) as ctx:
            try:
                result = call()
            except Exception as e:
                duration_ms = int((time.time() - start_time) * 1000)
                logger.error(
                    "%s failed: db_type=%s %s duration_ms=%d error=%s",
                    label, self.db_type, _format_fields(fields), duration_ms, e,
                )
                raise
            if summarize is not None:
                summarize(ctx, result)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "%s completed: db_type=%s %s duration_ms=%d",
            label, self.db_type, _format_fields(fields), duration_ms,
        )
        return result

    def schema(self, table_name: str) -> Table:
        def summarize(ctx, table):
            ctx.column_count = table.column_count

        return self._observe(
            "schema", "Schema retrieval", table_name, {"table_name": table_name},
            lambda: self.adapter.schema(table_name), summarize,
        )

    def query(self, query: str) -> QueryResult:
        def summarize(ctx, result):
            ctx.row_count = result.row_count
            ctx.column_count = len(result.columns)

        return self._observe(
            "query", "Query execution", query, {"query": repr(_shorten(query))},
            lambda: self.adapter.query(query), summarize,
        )

    def execute(self, query: str) -> bytes:
        return self._observe(
            "execute", "Query execution", query, {"query": repr(_shorten(query))},
            lambda: self.adapter.execute(query),
        )

    def tables(self, database_name: str) -> List[str]:
        def summarize(ctx, names):
            ctx.table_count = len(names)

        return self._observe(
            "tables", "Tables retrieval", database_name, {"database_name": database_name},
            lambda: self.adapter.tables(database_name), summarize,
        )

    def generate_create_table_query(self, table: Table) -> str:
        def summarize(ctx, _query):
            ctx.column_count = table.column_count

        return self._observe(
            "generate_create_table_query", "Create table query generation", table.name,
            {"table_name": table.name},
            lambda: self.adapter.generate_create_table_query(table), summarize,
        )

    def close(self) -> None:
        self.adapter.close()

    def __getattr__(self, name: str) -> Any:
        # Anything not observed (config, type_mapper, ...) comes from the adapter
        return getattr(self.adapter, name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
