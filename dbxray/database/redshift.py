"""Amazon Redshift adapter.

Redshift speaks the Postgres wire protocol, so psycopg2 is used for the
connection. Column metadata comes from ``pg_table_def``, which also carries
the storage attributes (encoding, distribution key, sort key) that are kept
on each column as metatags and emitted again in generated DDL.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..config import DatabaseConfig
from .base import DatabaseAdapter, default_sql
from .models import Column, DbType, QueryResult, Table, NO_DEFAULTS
from .postgres import quote_ident
from .results import normalize_cursor
from .type_mappers import RedshiftTypeMapper

logger = logging.getLogger(__name__)

# column_default of an identity column, e.g. "identity"(108406, 0, '1,1'::text)
_IDENTITY_DEFAULT = re.compile(r"identity\"?\(.*'(-?\d+),\s*(-?\d+)'", re.IGNORECASE)


def parse_identity_default(default: Optional[str]) -> Optional[Tuple[int, int]]:
    """Return (seed, step) when a column default describes an identity column."""
    if not default:
        return None
    match = _IDENTITY_DEFAULT.search(default)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class RedshiftAdapter(DatabaseAdapter):
    """Adapter for Amazon Redshift over psycopg2."""

    DB_TYPE = DbType.REDSHIFT
    REQUIRED_FIELDS = ("host", "username", "database")
    REQUIRES_PASSWORD = True
    CATALOG_DEFAULTS = NO_DEFAULTS
    TYPE_MAPPER = RedshiftTypeMapper()

    DEFAULT_PORT = 5439
    DEFAULT_SCHEMA = "public"

    TABLE_DEF_SQL = """
        SELECT "column", type, encoding, distkey, sortkey, "notnull"
        FROM pg_table_def
        WHERE schemaname = %s AND tablename = %s
    """

    COLUMN_INFO_SQL = """
        SELECT c.column_name, c.column_default, c.ordinal_position,
               c.character_maximum_length, tc.constraint_type
        FROM information_schema.columns c
        LEFT JOIN information_schema.key_column_usage kcu
          ON kcu.table_schema = c.table_schema
         AND kcu.table_name = c.table_name
         AND kcu.column_name = c.column_name
        LEFT JOIN information_schema.table_constraints tc
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
         AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
        WHERE c.table_schema = %s AND c.table_name = %s
    """

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            import psycopg2
        except ImportError:
            raise ImportError(
                "psycopg2 is required for Redshift connections. "
                "Install it with: pip install psycopg2-binary"
            )

        kwargs = {}
        if config.ssl:
            kwargs["sslmode"] = "require"
        if config.query_timeout_seconds:
            kwargs["options"] = f"-c statement_timeout={int(config.query_timeout_seconds * 1000)}"

        connection = psycopg2.connect(
            host=config.host,
            port=config.port or cls.DEFAULT_PORT,
            user=config.username,
            password=config.password_value(),
            dbname=config.database,
            **kwargs,
        )
        connection.autocommit = True
        return connection

    @property
    def schema_name(self) -> str:
        return self.config.schema_name or self.DEFAULT_SCHEMA

    def _column_info(self, table_name: str) -> Dict[str, dict]:
        info: Dict[str, dict] = {}
        for name, default, position, max_length, constraint in self._fetch_all(
            self.COLUMN_INFO_SQL, (self.schema_name, table_name)
        ):
            entry = info.setdefault(name, {
                "default": default,
                "position": position,
                "max_length": max_length,
                "primary": False,
                "unique": False,
            })
            if constraint == "PRIMARY KEY":
                entry["primary"] = True
                entry["unique"] = True
            elif constraint == "UNIQUE":
                entry["unique"] = True
        return info

    def _schema(self, table_name: str) -> Table:
        # pg_table_def only lists tables in schemas on the search path
        cursor = self.connection.cursor()
        try:
            cursor.execute(f"SET search_path TO {quote_ident(self.schema_name)}")
        finally:
            cursor.close()

        rows = self._fetch_all(self.TABLE_DEF_SQL, (self.schema_name, table_name))
        if not rows:
            return Table(name=table_name, columns=[], dataset=self.schema_name)
        info = self._column_info(table_name)

        columns = []
        for name, col_type, encoding, distkey, sortkey, notnull in rows:
            extra = info.get(name, {})
            identity = parse_identity_default(extra.get("default"))
            default = extra.get("default") if identity is None else None
            columns.append(Column(
                name=name,
                type=col_type,
                is_nullable=not notnull,
                is_primary=extra.get("primary", False),
                is_unique=extra.get("unique", False),
                default_value=None if default is None else str(default),
                auto_increment=identity is not None,
                character_maximum_length=extra.get("max_length"),
                ordinal_position=extra.get("position"),
                identity_seed=identity[0] if identity else None,
                identity_step=identity[1] if identity else None,
                metatags=[
                    f"encode:{encoding}",
                    f"distkey:{str(bool(distkey)).lower()}",
                    f"sortkey:{sortkey}",
                    f"notnull:{str(bool(notnull)).lower()}",
                ],
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
        rows = self._fetch_all(f"SHOW TABLES FROM SCHEMA {database_name}.{self.schema_name};")
        # database_name, schema_name, table_name, table_type, table_acl, remarks
        return [row[2] for row in rows if row[3] == "TABLE"]

    def _table_name(self, table: Table) -> str:
        schema = table.dataset or self.config.schema_name
        parts = [p for p in (self.config.database, schema, table.name) if p]
        return ".".join(parts)

    def generate_create_table_query(self, table: Table) -> str:
        sort_columns = []
        for col in table.columns:
            position = _to_int(col.metatag("sortkey"))
            if position:
                sort_columns.append((abs(position), position < 0, col.name))
        inline_sortkey = len(sort_columns) == 1

        definitions = []
        for col in table.columns:
            parts = [col.name, self._map_type(col)]
            if col.auto_increment:
                seed = col.identity_seed if col.identity_seed is not None else 1
                step = col.identity_step if col.identity_step is not None else 1
                parts.append(f"IDENTITY({seed}, {step})")
            elif col.default_value is not None:
                parts.append(f"DEFAULT {default_sql(col.default_value)}")

            encoding = col.metatag("encode")
            if encoding:
                parts.append(f"ENCODE {'RAW' if encoding.lower() == 'none' else encoding.upper()}")
            if col.metatag("distkey") == "true":
                parts.append("DISTKEY")
            if inline_sortkey and _to_int(col.metatag("sortkey")):
                parts.append("SORTKEY")
            if col.is_nullable is False:
                parts.append("NOT NULL")
            if col.is_primary:
                parts.append("PRIMARY KEY")
            elif col.is_unique:
                parts.append("UNIQUE")
            definitions.append(" ".join(parts))

        query = f"CREATE TABLE {self._table_name(table)} ({', '.join(definitions)})"
        if len(sort_columns) > 1:
            sort_columns.sort()
            style = "INTERLEAVED" if any(negative for _, negative, _ in sort_columns) else "COMPOUND"
            query += f" {style} SORTKEY ({', '.join(name for _, _, name in sort_columns)})"
        return query + ";"


def _to_int(value: Optional[str]) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0
