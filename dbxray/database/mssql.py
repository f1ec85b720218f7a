"""Microsoft SQL Server adapter."""

import logging
from typing import List

from ..config import DatabaseConfig
from .base import DatabaseAdapter, default_sql
from .models import Column, DbType, QueryResult, Table, ROW_STORE_DEFAULTS
from .results import normalize_cursor
from .type_mappers import MSSQLTypeMapper

logger = logging.getLogger(__name__)


# Types whose length is part of the declaration
SIZED_TYPES = {"CHAR", "VARCHAR", "NCHAR", "NVARCHAR", "BINARY", "VARBINARY"}


def quote_ident(name: str) -> str:
    return "[" + name.replace("]", "]]") + "]"


class MSSQLAdapter(DatabaseAdapter):
    """Adapter for SQL Server over pymssql."""

    DB_TYPE = DbType.MSSQL
    REQUIRED_FIELDS = ("host", "username", "database")
    REQUIRES_PASSWORD = True
    CATALOG_DEFAULTS = ROW_STORE_DEFAULTS
    TYPE_MAPPER = MSSQLTypeMapper()

    DEFAULT_PORT = 1433
    DEFAULT_SCHEMA = "dbo"

    SCHEMA_SQL = """
        SELECT
            c.COLUMN_NAME,
            c.DATA_TYPE,
            c.IS_NULLABLE,
            c.COLUMN_DEFAULT,
            c.ORDINAL_POSITION,
            c.CHARACTER_MAXIMUM_LENGTH,
            COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)),
                           c.COLUMN_NAME, 'IsIdentity') AS IS_IDENTITY,
            IDENT_SEED(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)) AS IDENTITY_SEED,
            IDENT_INCR(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)) AS IDENTITY_STEP,
            CASE WHEN pk.COLUMN_NAME IS NULL THEN 0 ELSE 1 END AS IS_PRIMARY,
            CASE WHEN uq.COLUMN_NAME IS NULL THEN 0 ELSE 1 END AS IS_UNIQUE
        FROM INFORMATION_SCHEMA.COLUMNS c
        LEFT JOIN (
            SELECT kcu.TABLE_SCHEMA, kcu.TABLE_NAME, kcu.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
              ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
             AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
            WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
        ) pk ON pk.TABLE_SCHEMA = c.TABLE_SCHEMA AND pk.TABLE_NAME = c.TABLE_NAME
            AND pk.COLUMN_NAME = c.COLUMN_NAME
        LEFT JOIN (
            SELECT DISTINCT kcu.TABLE_SCHEMA, kcu.TABLE_NAME, kcu.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
              ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
             AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
            WHERE tc.CONSTRAINT_TYPE = 'UNIQUE'
        ) uq ON uq.TABLE_SCHEMA = c.TABLE_SCHEMA AND uq.TABLE_NAME = c.TABLE_NAME
            AND uq.COLUMN_NAME = c.COLUMN_NAME
        WHERE c.TABLE_SCHEMA = %s AND c.TABLE_NAME = %s
        ORDER BY c.ORDINAL_POSITION
    """

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            import pymssql
        except ImportError:
            raise ImportError(
                "pymssql is required for SQL Server connections. "
                "Install it with: pip install pymssql"
            )

        kwargs = {}
        if config.query_timeout_seconds:
            kwargs["timeout"] = int(config.query_timeout_seconds)

        return pymssql.connect(
            server=config.host,
            port=str(config.port or cls.DEFAULT_PORT),
            user=config.username,
            password=config.password_value(),
            database=config.database,
            autocommit=True,
            **kwargs,
        )

    @property
    def schema_name(self) -> str:
        return self.config.schema_name or self.DEFAULT_SCHEMA

    def _schema(self, table_name: str) -> Table:
        rows = self._fetch_all(self.SCHEMA_SQL, (self.schema_name, table_name))

        columns = []
        for row in rows:
            (name, data_type, nullable, default, position, max_length,
             is_identity, seed, step, is_primary, is_unique) = row
            identity = bool(is_identity)
            columns.append(Column(
                name=name,
                type=data_type,
                is_nullable=Column.from_catalog_flag(nullable),
                is_primary=bool(is_primary),
                is_unique=bool(is_primary) or bool(is_unique),
                default_value=_strip_parens(default),
                auto_increment=identity,
                character_maximum_length=max_length,
                ordinal_position=position,
                identity_seed=int(seed) if identity and seed is not None else None,
                identity_step=int(step) if identity and step is not None else None,
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
            f"SELECT TABLE_NAME FROM {quote_ident(database_name)}.INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_TYPE = 'BASE TABLE'"
        )
        return [row[0] for row in rows]

    def _sized_type(self, col: Column) -> str:
        """Dialect type, with the catalog length put back on sized types.

        The catalog reports ``varchar`` and the length separately, and a bare
        ``varchar`` in DDL means length 1.
        """
        type_name = self._map_type(col)
        length = col.character_maximum_length
        if "(" in type_name or length is None or type_name.upper() not in SIZED_TYPES:
            return type_name
        return f"{type_name}({'MAX' if length == -1 else length})"

    def generate_create_table_query(self, table: Table) -> str:
        definitions = []
        for col in table.columns:
            parts = [quote_ident(col.name), self._sized_type(col)]
            if col.auto_increment:
                seed = col.identity_seed if col.identity_seed is not None else 1
                step = col.identity_step if col.identity_step is not None else 1
                parts.append(f"IDENTITY({seed},{step})")
            if col.default_value is not None:
                parts.append(f"DEFAULT ({default_sql(col.default_value)})")
            if col.is_nullable is False and not col.is_primary:
                parts.append("NOT NULL")
            definitions.append(" ".join(parts))

        primary = [quote_ident(c.name) for c in table.primary_key_columns]
        if primary:
            definitions.append(f"PRIMARY KEY ({', '.join(primary)})")
        for col in table.columns:
            if col.is_unique and not col.is_primary:
                definitions.append(f"UNIQUE ({quote_ident(col.name)})")

        return f"CREATE TABLE {quote_ident(table.name)} ({', '.join(definitions)})"


def _strip_parens(default):
    """SQL Server reports defaults wrapped in parentheses, e.g. ``((0))``."""
    if default is None:
        return None
    text = str(default)
    while text.startswith("(") and text.endswith(")") and _wraps_whole(text):
        text = text[1:-1]
    return text


def _wraps_whole(text: str) -> bool:
    depth = 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and i != len(text) - 1:
                return False
    return depth == 0
