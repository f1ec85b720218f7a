"""DuckDB adapter."""

import logging
from typing import List, Set

from ..config import DatabaseConfig
from .base import DatabaseAdapter, column_clauses
from .models import Column, DbType, QueryResult, Table, ROW_STORE_DEFAULTS
from .results import normalize_cursor
from .type_mappers import DuckDBTypeMapper

logger = logging.getLogger(__name__)


class DuckDBAdapter(DatabaseAdapter):
    """Adapter for DuckDB files and in-memory databases."""

    DB_TYPE = DbType.DUCKDB
    REQUIRED_FIELDS = ()
    REQUIRES_PASSWORD = False
    CATALOG_DEFAULTS = ROW_STORE_DEFAULTS
    TYPE_MAPPER = DuckDBTypeMapper()

    DEFAULT_SCHEMA = "main"

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            import duckdb
        except ImportError:
            raise ImportError(
                "duckdb is required. "
                "Install it with: pip install duckdb"
            )

        path = config.path or ":memory:"
        if path.startswith("duckdb:///"):
            path = path[10:]
        if path == ":memory:":
            # In-memory databases cannot be opened read-only
            return duckdb.connect(path)
        return duckdb.connect(path, read_only=config.read_only)

    @property
    def schema_name(self) -> str:
        return self.config.schema_name or self.DEFAULT_SCHEMA

    def _constraint_columns(self, table_name: str, constraint_type: str) -> Set[str]:
        rows = self._fetch_all(
            """
            SELECT constraint_column_names
            FROM duckdb_constraints()
            WHERE schema_name = ? AND table_name = ? AND constraint_type = ?
            """,
            (self.schema_name, table_name, constraint_type),
        )
        names: Set[str] = set()
        for (column_names,) in rows:
            if isinstance(column_names, list):
                names.update(column_names)
            else:
                names.add(column_names)
        return names

    def _schema(self, table_name: str) -> Table:
        rows = self._fetch_all(
            """
            SELECT column_name, data_type, is_nullable, column_default,
                   character_maximum_length, ordinal_position
            FROM information_schema.columns
            WHERE table_schema = ? AND table_name = ?
            ORDER BY ordinal_position
            """,
            (self.schema_name, table_name),
        )
        if not rows:
            return Table(name=table_name, columns=[], dataset=self.schema_name)

        primary = self._constraint_columns(table_name, "PRIMARY KEY")
        unique = self._constraint_columns(table_name, "UNIQUE")

        columns = []
        for name, data_type, nullable, default, max_length, position in rows:
            columns.append(Column(
                name=name,
                type=data_type,
                is_nullable=Column.from_catalog_flag(nullable),
                is_primary=name in primary,
                is_unique=name in primary or name in unique,
                default_value=None if default is None else str(default),
                character_maximum_length=max_length,
                ordinal_position=position,
            ))
        return Table(name=table_name, columns=columns, dataset=self.schema_name)

    def _query(self, query: str) -> QueryResult:
        cursor = self.connection.cursor()
        try:
            cursor.execute(query)
            return normalize_cursor(cursor)
        finally:
            cursor.close()

    def _tables(self, database_name: str) -> List[str]:
        rows = self._fetch_all(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_catalog = ? AND table_schema = ? AND table_type = 'BASE TABLE'
            """,
            (database_name, self.schema_name),
        )
        return [row[0] for row in rows]

    def generate_create_table_query(self, table: Table) -> str:
        definitions = [
            column_clauses(col, self._map_type(col), suppress_on_primary=True)
            for col in table.columns
        ]
        return f"CREATE TABLE {table.qualified_name} ({', '.join(definitions)});"
