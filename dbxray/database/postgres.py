"""PostgreSQL adapter."""

import logging
from typing import List, Optional

from ..config import DatabaseConfig
from .base import DatabaseAdapter, column_clauses, quote_literal
from .models import Column, DbType, QueryResult, Table, ROW_STORE_DEFAULTS
from .results import decode_base64_text, normalize_cursor
from .type_mappers import PostgresTypeMapper

logger = logging.getLogger(__name__)


# psql meta-commands with a fixed SQL equivalent
META_COMMANDS = {
    "\\l": "SELECT datname FROM pg_database WHERE datistemplate = false;",
    "\\dt": "SELECT * FROM pg_catalog.pg_tables;",
    "\\d": "SELECT * FROM pg_catalog.pg_tables;",
    "\\du": "SELECT rolname FROM pg_roles;",
    "\\conninfo": "SELECT * FROM pg_stat_activity WHERE pid = pg_backend_pid();",
}

# psql meta-commands that take one argument
META_COMMAND_TEMPLATES = {
    "\\d": "SELECT * FROM {ident};",
    "\\dn": "SELECT * FROM pg_catalog.pg_namespace WHERE nspname = {literal};",
    "\\dp": "SELECT * FROM pg_catalog.pg_statio_all_tables WHERE relname = {literal};",
}


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def rewrite_meta_command(query: str) -> str:
    """Translate a psql backslash command into plain SQL.

    Shell-only commands (``\\q``, ``\\c``, ``\\?``) and anything that is not
    a known meta-command are returned unchanged.
    """
    text = query.strip().rstrip(";").strip()
    if not text.startswith("\\"):
        return query
    if text in META_COMMANDS:
        return META_COMMANDS[text]

    command, _, argument = text.partition(" ")
    argument = argument.strip()
    template = META_COMMAND_TEMPLATES.get(command)
    if template is None or not argument:
        return query

    if "." in argument:
        ident = ".".join(quote_ident(part) for part in argument.split("."))
    else:
        ident = quote_ident(argument)
    return template.format(ident=ident, literal=quote_literal(argument))


class PostgresAdapter(DatabaseAdapter):
    """Adapter for PostgreSQL over psycopg2."""

    DB_TYPE = DbType.POSTGRES
    REQUIRED_FIELDS = ("host", "username", "database")
    REQUIRES_PASSWORD = True
    CATALOG_DEFAULTS = ROW_STORE_DEFAULTS
    TYPE_MAPPER = PostgresTypeMapper()

    DEFAULT_PORT = 5432
    DEFAULT_SCHEMA = "public"

    SCHEMA_SQL = """
        SELECT
            c.column_name,
            c.data_type,
            c.is_nullable,
            c.column_default,
            c.character_maximum_length,
            c.ordinal_position,
            c.is_updatable,
            c.is_identity,
            c.identity_start,
            c.identity_increment,
            c.udt_name,
            EXISTS (
                SELECT 1
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                  ON tc.constraint_name = kcu.constraint_name
                 AND tc.table_schema = kcu.table_schema
                 AND tc.table_name = kcu.table_name
                WHERE tc.constraint_type = 'PRIMARY KEY'
                  AND tc.table_schema = c.table_schema
                  AND tc.table_name = c.table_name
                  AND kcu.column_name = c.column_name
            ) AS is_primary,
            EXISTS (
                SELECT 1
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                  ON tc.constraint_name = kcu.constraint_name
                 AND tc.table_schema = kcu.table_schema
                 AND tc.table_name = kcu.table_name
                WHERE tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
                  AND tc.table_schema = c.table_schema
                  AND tc.table_name = c.table_name
                  AND kcu.column_name = c.column_name
            ) AS is_unique
        FROM information_schema.columns c
        WHERE c.table_schema = %s AND c.table_name = %s
        ORDER BY c.ordinal_position
    """

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            import psycopg2
        except ImportError:
            raise ImportError(
                "psycopg2 is required for Postgres connections. "
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
        # Catalog reads and ad-hoc queries should not hold a transaction open
        connection.autocommit = True
        return connection

    @property
    def schema_name(self) -> str:
        return self.config.schema_name or self.DEFAULT_SCHEMA

    def _schema(self, table_name: str) -> Table:
        rows = self._fetch_all(self.SCHEMA_SQL, (self.schema_name, table_name))

        columns = []
        for row in rows:
            (name, data_type, nullable, default, max_length, position, updatable,
             is_identity, identity_start, identity_increment, udt_name, is_primary, is_unique) = row
            identity = Column.from_catalog_flag(is_identity) is True
            serial = default is not None and str(default).startswith("nextval(")
            columns.append(Column(
                name=name,
                type=data_type if data_type != "USER-DEFINED" else udt_name,
                is_nullable=Column.from_catalog_flag(nullable),
                is_primary=bool(is_primary),
                is_unique=bool(is_unique),
                default_value=None if default is None or serial else str(default),
                auto_increment=identity or serial,
                character_maximum_length=max_length,
                ordinal_position=position,
                identity_seed=_to_int(identity_start) if identity else None,
                identity_step=_to_int(identity_increment) if identity else None,
                is_updatable=Column.from_catalog_flag(updatable),
            ))
        return Table(name=table_name, columns=columns, dataset=self.schema_name)

    def _query(self, query: str) -> QueryResult:
        sql = rewrite_meta_command(query)
        if sql != query:
            logger.debug("Rewrote meta-command %r to %r", query, sql)
        post_process = decode_base64_text if self.config.decode_base64_text else None

        cursor = self.connection.cursor()
        try:
            cursor.execute(sql)
            return normalize_cursor(cursor, post_process=post_process)
        finally:
            cursor.close()

    def _tables(self, database_name: str) -> List[str]:
        rows = self._fetch_all(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' AND table_catalog = %s",
            (self.schema_name, database_name),
        )
        return [row[0] for row in rows]

    def generate_create_table_query(self, table: Table) -> str:
        definitions = []
        for col in table.columns:
            type_name = self._map_type(col)
            identity = None
            if "SERIAL" not in type_name.upper():
                identity = "GENERATED BY DEFAULT AS IDENTITY"
                if col.identity_seed is not None or col.identity_step is not None:
                    seed = col.identity_seed if col.identity_seed is not None else 1
                    step = col.identity_step if col.identity_step is not None else 1
                    identity += f" (START WITH {seed} INCREMENT BY {step})"
            definitions.append(column_clauses(
                col, type_name, auto_increment=identity, name=quote_ident(col.name),
            ))
        return f"CREATE TABLE {quote_ident(table.name)} ({', '.join(definitions)});"


def _to_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)
