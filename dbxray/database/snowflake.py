"""Snowflake adapter."""

import logging
import re
from typing import List, Set

from ..config import DatabaseConfig
from .base import DatabaseAdapter, column_clauses
from .models import Column, DbType, QueryResult, Table, ROW_STORE_DEFAULTS
from .results import decode_base64_text, normalize_cursor
from .type_mappers import SnowflakeTypeMapper

logger = logging.getLogger(__name__)

_PLAIN_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def snowflake_ident(name: str) -> str:
    """Leave plain identifiers unquoted so Snowflake upper-cases them."""
    if _PLAIN_IDENT.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


class SnowflakeAdapter(DatabaseAdapter):
    """Adapter for Snowflake over snowflake-connector-python."""

    DB_TYPE = DbType.SNOWFLAKE
    REQUIRED_FIELDS = ("account", "username", "database")
    REQUIRES_PASSWORD = True
    CATALOG_DEFAULTS = ROW_STORE_DEFAULTS
    TYPE_MAPPER = SnowflakeTypeMapper()

    DEFAULT_SCHEMA = "PUBLIC"

    SCHEMA_SQL = """
        SELECT column_name, data_type, is_nullable, column_default,
               character_maximum_length, ordinal_position,
               is_identity, identity_start, identity_increment, comment
        FROM information_schema.columns
        WHERE UPPER(table_schema) = UPPER(%s) AND UPPER(table_name) = UPPER(%s)
        ORDER BY ordinal_position
    """

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            import snowflake.connector
        except ImportError:
            raise ImportError(
                "snowflake-connector-python is required. "
                "Install it with: pip install snowflake-connector-python"
            )

        return snowflake.connector.connect(
            account=config.account,
            user=config.username,
            password=config.password_value(),
            warehouse=config.warehouse,
            database=config.database,
            schema=config.schema_name or cls.DEFAULT_SCHEMA,
            role=config.role,
        )

    @property
    def schema_name(self) -> str:
        return self.config.schema_name or self.DEFAULT_SCHEMA

    def _qualified(self, table_name: str) -> str:
        parts = [self.config.database, self.schema_name, table_name]
        return ".".join(snowflake_ident(p) for p in parts if p)

    def _key_columns(self, kind: str, table_name: str) -> Set[str]:
        """Column names in the table's PRIMARY or UNIQUE keys."""
        rows = self._fetch_all(f"SHOW {kind} KEYS IN TABLE {self._qualified(table_name)}")
        # column_name is the fifth field of SHOW ... KEYS output
        return {row[4] for row in rows}

    def _schema(self, table_name: str) -> Table:
        rows = self._fetch_all(self.SCHEMA_SQL, (self.schema_name, table_name))
        if not rows:
            return Table(name=table_name, columns=[], dataset=self.schema_name)

        primary = self._key_columns("PRIMARY", table_name)
        unique = self._key_columns("UNIQUE", table_name)

        columns = []
        for row in rows:
            (name, data_type, nullable, default, max_length, position,
             is_identity, identity_start, identity_increment, comment) = row
            identity = Column.from_catalog_flag(is_identity) is True
            columns.append(Column(
                name=name,
                type=data_type,
                is_nullable=Column.from_catalog_flag(nullable),
                is_primary=name in primary,
                is_unique=name in primary or name in unique,
                default_value=None if default is None else str(default),
                auto_increment=identity,
                character_maximum_length=max_length,
                ordinal_position=position,
                identity_seed=int(identity_start) if identity and identity_start is not None else None,
                identity_step=int(identity_increment) if identity and identity_increment is not None else None,
                description=comment,
            ))
        return Table(name=table_name, columns=columns, dataset=self.schema_name)

    def _query(self, query: str) -> QueryResult:
        post_process = decode_base64_text if self.config.decode_base64_text else None
        cursor = self.connection.cursor()
        try:
            if self.config.query_timeout_seconds:
                cursor.execute(query, timeout=int(self.config.query_timeout_seconds))
            else:
                cursor.execute(query)
            return normalize_cursor(cursor, post_process=post_process)
        finally:
            cursor.close()

    def _tables(self, database_name: str) -> List[str]:
        rows = self._fetch_all(
            f"SELECT table_name FROM {snowflake_ident(database_name)}.information_schema.tables "
            "WHERE UPPER(table_schema) = UPPER(%s) AND table_type = 'BASE TABLE'",
            (self.schema_name,),
        )
        return [row[0] for row in rows]

    def generate_create_table_query(self, table: Table) -> str:
        definitions = []
        for col in table.columns:
            auto = "AUTOINCREMENT"
            if col.identity_seed is not None or col.identity_step is not None:
                seed = col.identity_seed if col.identity_seed is not None else 1
                step = col.identity_step if col.identity_step is not None else 1
                auto = f"AUTOINCREMENT ({seed}, {step})"
            definitions.append(column_clauses(
                col, self._map_type(col), auto_increment=auto, suppress_on_primary=True,
            ))
        return f"CREATE TABLE {table.qualified_name} ({', '.join(definitions)});"
