"""Google BigQuery adapter."""

import json
import logging
from typing import List

from ..config import DatabaseConfig
from ..errors import CatalogError
from .base import DatabaseAdapter, default_sql
from .models import Column, DbType, QueryResult, Table, NO_DEFAULTS
from .results import normalize_rows
from .type_mappers import BigQueryTypeMapper

logger = logging.getLogger(__name__)


class BigQueryAdapter(DatabaseAdapter):
    """Adapter for BigQuery over google-cloud-bigquery.

    ``database`` in the config names the default dataset. Table names passed
    to :meth:`schema` may also be qualified as ``dataset.table``.
    """

    DB_TYPE = DbType.BIGQUERY
    REQUIRED_FIELDS = ("project_id",)
    REQUIRES_PASSWORD = False
    # The BigQuery client is safe to share between threads
    THREAD_SAFE = True
    CATALOG_DEFAULTS = NO_DEFAULTS
    TYPE_MAPPER = BigQueryTypeMapper()

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            from google.cloud import bigquery
        except ImportError:
            raise ImportError(
                "google-cloud-bigquery is required for BigQuery connections. "
                "Install it with: pip install google-cloud-bigquery"
            )

        if config.json_key_path:
            return bigquery.Client.from_service_account_json(
                config.json_key_path,
                project=config.project_id,
                location=config.region,
            )
        # Application default credentials
        return bigquery.Client(project=config.project_id, location=config.region)

    def _table_ref(self, table_name: str) -> str:
        if "." in table_name:
            dataset_table = table_name
        else:
            dataset_table = f"{self.config.database}.{table_name}"
        return f"{self.config.project_id}.{dataset_table}"

    def _schema(self, table_name: str) -> Table:
        from google.api_core.exceptions import NotFound

        ref = self._table_ref(table_name)
        try:
            bq_table = self.connection.get_table(ref)
        except NotFound as e:
            raise CatalogError(f"Table not found: {ref}", details={"table_name": table_name}) from e

        primary = set()
        constraints = getattr(bq_table, "table_constraints", None)
        if constraints is not None and constraints.primary_key is not None:
            primary = set(constraints.primary_key.columns)

        columns = []
        for position, field in enumerate(bq_table.schema, start=1):
            mode = (field.mode or "NULLABLE").upper()
            metatags = [f"mode:{mode}"] if mode == "REPEATED" else []
            columns.append(Column(
                name=field.name,
                type=field.field_type,
                is_nullable=mode != "REQUIRED",
                is_primary=field.name in primary,
                is_unique=True if field.name in primary else None,
                default_value=getattr(field, "default_value_expression", None),
                character_maximum_length=field.max_length,
                ordinal_position=position,
                description=field.description or "",
                metatags=metatags,
            ))

        labels = [f"{k}:{v}" for k, v in sorted((bq_table.labels or {}).items())]
        return Table(
            name=bq_table.table_id,
            columns=columns,
            dataset=bq_table.dataset_id,
            description=bq_table.description or "",
            metatags=labels,
        )

    def _query(self, query: str) -> QueryResult:
        job = self.connection.query(query)
        rows = job.result(timeout=self.config.query_timeout_seconds)
        columns = [field.name for field in (rows.schema or [])]
        return normalize_rows(columns, (row.values() for row in rows))

    def _tables(self, database_name: str) -> List[str]:
        dataset = f"{self.config.project_id}.{database_name}"
        return [
            item.table_id
            for item in self.connection.list_tables(dataset)
            if item.table_type == "TABLE"
        ]

    def generate_create_table_query(self, table: Table) -> str:
        definitions = []
        for col in table.columns:
            type_name = self._map_type(col)
            repeated = col.metatag("mode") == "REPEATED"
            if repeated:
                type_name = f"ARRAY<{type_name}>"
            parts = [col.name, type_name]
            if col.default_value is not None:
                parts.append(f"DEFAULT {default_sql(col.default_value)}")
            if col.is_nullable is False and not repeated:
                parts.append("NOT NULL")
            if col.description:
                parts.append(f"OPTIONS(description={json.dumps(col.description)})")
            definitions.append(" ".join(parts))

        dataset = table.dataset or self.config.database
        name = f"{dataset}.{table.name}" if dataset else table.name
        return f"CREATE TABLE {name} ({', '.join(definitions)});"
