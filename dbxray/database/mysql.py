"""MySQL adapter."""

import logging
from typing import Any, List

from ..config import DatabaseConfig
from .base import DatabaseAdapter, column_clauses, quote_literal
from .models import Column, DbType, QueryResult, Table, ROW_STORE_DEFAULTS
from .results import normalize_cursor, utf8_bytes_to_str
from .type_mappers import MySQLTypeMapper

logger = logging.getLogger(__name__)


def _text(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


class MySQLAdapter(DatabaseAdapter):
    """Adapter for MySQL and MariaDB over pymysql."""

    DB_TYPE = DbType.MYSQL
    REQUIRED_FIELDS = ("host", "username", "database")
    REQUIRES_PASSWORD = True
    CATALOG_DEFAULTS = ROW_STORE_DEFAULTS
    TYPE_MAPPER = MySQLTypeMapper()

    DEFAULT_PORT = 3306

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            import pymysql
        except ImportError:
            raise ImportError(
                "pymysql is required for MySQL connections. "
                "Install it with: pip install pymysql"
            )

        kwargs = {}
        if config.query_timeout_seconds:
            kwargs["read_timeout"] = int(config.query_timeout_seconds)
        if config.ssl:
            kwargs["ssl"] = {"ssl": {}}

        return pymysql.connect(
            host=config.host,
            port=config.port or cls.DEFAULT_PORT,
            user=config.username,
            password=config.password_value(),
            database=config.database,
            **kwargs,
        )

    def _schema(self, table_name: str) -> Table:
        quoted = "`" + table_name.replace("`", "``") + "`"
        rows = self._fetch_all(f"DESCRIBE {quoted}")

        columns = []
        for position, row in enumerate(rows, start=1):
            field, col_type, null, key, default, extra = (_text(v) for v in row[:6])
            key = key or ""
            extra = extra or ""
            columns.append(Column(
                name=field,
                type=col_type,
                is_nullable=Column.from_catalog_flag(null),
                is_primary=key == "PRI",
                is_unique=key in ("PRI", "UNI"),
                default_value=_default_sql(default, col_type, extra),
                auto_increment="auto_increment" in extra.lower(),
                ordinal_position=position,
                key=key,
                extra=extra,
                is_index=key != "",
            ))
        return Table(name=table_name, columns=columns, dataset=self.config.database)

    def _query(self, query: str) -> QueryResult:
        cursor = self.connection.cursor()
        try:
            cursor.execute(query)
            return normalize_cursor(cursor, post_process=utf8_bytes_to_str)
        finally:
            cursor.close()

    def _tables(self, database_name: str) -> List[str]:
        rows = self._fetch_all(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE'",
            (database_name,),
        )
        return [_text(row[0]) for row in rows]

    def generate_create_table_query(self, table: Table) -> str:
        definitions = [
            column_clauses(
                col,
                self._map_type(col),
                auto_increment="AUTO_INCREMENT",
                suppress_on_primary=True,
            )
            for col in table.columns
        ]
        return f"CREATE TABLE {table.name} ({', '.join(definitions)})"


# Types whose DESCRIBE default is a bare literal that needs quoting in DDL
QUOTED_DEFAULT_TYPES = {
    "char", "varchar", "tinytext", "text", "mediumtext", "longtext",
    "enum", "set", "date", "datetime", "timestamp", "time", "year",
}


def _default_sql(default: Any, col_type: str, extra: str) -> Any:
    """Turn a DESCRIBE default into SQL that can follow DEFAULT.

    DESCRIBE reports ``new`` for ``DEFAULT 'new'`` and an empty cell for
    ``DEFAULT ''``. Expression defaults (``DEFAULT_GENERATED`` in Extra, or
    ``CURRENT_TIMESTAMP`` style keywords) are left as they are.
    """
    if default is None:
        return None
    text = str(default)
    base_type = (col_type or "").split("(")[0].strip().lower()
    if base_type not in QUOTED_DEFAULT_TYPES:
        return text
    if "default_generated" in extra.lower():
        return text
    upper = text.upper()
    if upper.startswith("CURRENT_") or upper.startswith("NOW(") or upper.startswith("LOCALTIME"):
        return text
    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        return text
    return quote_literal(text)
