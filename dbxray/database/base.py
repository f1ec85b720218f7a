"""Abstract base class for database adapters."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple

from ..config import DatabaseConfig
from ..errors import CatalogError, ConfigError, ConnectionError, ExecutionError, XrayError
from .models import CatalogDefaults, Column, DbType, QueryResult, Table, NO_DEFAULTS
from .results import serialize
from .type_mappers import TypeMapper

logger = logging.getLogger(__name__)


class DatabaseAdapter(ABC):
    """Common contract every backend implements.

    An adapter owns one native connection (or client) and the config it was
    opened with. Subclasses provide the four operations for their backend:
    schema introspection, query execution, table listing and CREATE TABLE
    generation. DDL generation never touches the connection, so an adapter
    built with ``connection=None`` can still generate statements.
    """

    DB_TYPE: DbType
    # Config fields that must be set before connecting
    REQUIRED_FIELDS: Tuple[str, ...] = ()
    REQUIRES_PASSWORD: bool = False
    # DB-API connections are not safe to share between threads
    THREAD_SAFE: bool = False
    CATALOG_DEFAULTS: CatalogDefaults = NO_DEFAULTS
    TYPE_MAPPER: TypeMapper

    def __init__(self, connection: Any = None, config: Optional[DatabaseConfig] = None):
        """Wrap an already open native connection.

        Args:
            connection: Driver connection or client object
            config: Config the connection was opened with
        """
        self._connection = connection
        self.config = config or DatabaseConfig()
        self.type_mapper = self.TYPE_MAPPER
        self._lock = None if self.THREAD_SAFE else threading.RLock()

    @classmethod
    def validate_config(cls, config: DatabaseConfig) -> None:
        """Check the config holds what this backend needs to connect.

        Raises:
            ConfigError: If a required field or the password is missing
        """
        missing = config.missing_fields(cls.REQUIRED_FIELDS)
        if cls.REQUIRES_PASSWORD and not config.password_value():
            missing.append("password (DB_PASSWORD)")
        if missing:
            raise ConfigError(
                f"Missing configuration for {cls.DB_TYPE.value}: {', '.join(missing)}",
                details={"db_type": cls.DB_TYPE.value, "missing": missing},
            )

    @classmethod
    @abstractmethod
    def connect(cls, config: DatabaseConfig) -> Any:
        """Open a native connection from a validated config."""
        pass

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "DatabaseAdapter":
        """Validate the config, connect, and return an adapter.

        Raises:
            ConfigError: If the config is incomplete (no connection attempted)
            ConnectionError: If the driver fails to connect
        """
        cls.validate_config(config)
        try:
            connection = cls.connect(config)
        except XrayError:
            raise
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to {cls.DB_TYPE.value}: {e}",
                details={"db_type": cls.DB_TYPE.value, "host": config.host},
            ) from e
        logger.debug("Connected to %s", cls.DB_TYPE.value)
        return cls(connection, config)

    @property
    def connection(self) -> Any:
        if self._connection is None:
            raise ConnectionError(f"{self.DB_TYPE.value} adapter has no open connection")
        return self._connection

    def _locked(self):
        return self._lock if self._lock is not None else _NoLock()

    # Operations

    def schema(self, table_name: str) -> Table:
        """Describe a table's columns.

        Raises:
            CatalogError: If the catalog cannot be read or the table is unknown
        """
        with self._locked():
            try:
                table = self._schema(table_name)
            except XrayError:
                raise
            except Exception as e:
                raise CatalogError(
                    f"Failed to describe table {table_name}: {e}",
                    details={"table_name": table_name},
                ) from e
        for column in table.columns:
            self.CATALOG_DEFAULTS.apply(column)
        return table

    def query(self, query: str) -> QueryResult:
        """Run a query and return its normalized result.

        Raises:
            ExecutionError: If the backend rejects the query
            ScanError: If the result set cannot be read
        """
        start_time = time.time()
        with self._locked():
            try:
                result = self._query(query)
            except XrayError:
                raise
            except Exception as e:
                raise ExecutionError(f"Query failed: {e}", details={"query": query}) from e
        result.time = int((time.time() - start_time) * 1000)
        return result

    def execute(self, query: str) -> bytes:
        """Run a query and return the serialized result envelope."""
        return serialize(self.query(query))

    def tables(self, database_name: str) -> List[str]:
        """List base tables, in the order the catalog returns them.

        Raises:
            ListError: If the catalog cannot be read
        """
        with self._locked():
            try:
                return self._tables(database_name)
            except XrayError:
                raise
            except Exception as e:
                raise CatalogError(
                    f"Failed to list tables in {database_name}: {e}",
                    details={"database_name": database_name},
                ) from e

    @abstractmethod
    def generate_create_table_query(self, table: Table) -> str:
        """Render a CREATE TABLE statement for this dialect."""
        pass

    @abstractmethod
    def _schema(self, table_name: str) -> Table:
        pass

    @abstractmethod
    def _query(self, query: str) -> QueryResult:
        pass

    @abstractmethod
    def _tables(self, database_name: str) -> List[str]:
        pass

    # Helpers for subclasses

    def _fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Tuple]:
        """Run a catalog query on a DB-API connection and fetch every row."""
        cursor = self.connection.cursor()
        try:
            if params is None:
                cursor.execute(sql)
            else:
                cursor.execute(sql, params)
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def _map_type(self, column: Column) -> str:
        return self.type_mapper.to_dialect_type(column.type)

    def close(self) -> None:
        """Close the native connection."""
        if self._connection is not None:
            try:
                self._connection.close()
            finally:
                self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class _NoLock:
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


def quote_literal(value: str) -> str:
    """Quote a string as a SQL literal."""
    return "'" + value.replace("'", "''") + "'"


def default_sql(value: str) -> str:
    """Render a stored default for a DEFAULT clause.

    An empty-string default is stored as ``""`` and must still produce a
    literal, otherwise the clause would be ``DEFAULT`` with nothing after it.
    """
    if value == "":
        return quote_literal("")
    return value


def column_clauses(
    column: Column,
    type_name: str,
    auto_increment: Optional[str] = None,
    suppress_on_primary: bool = False,
    include_unique: bool = True,
    name: Optional[str] = None,
) -> str:
    """Render ``name TYPE [auto] [PRIMARY KEY] [DEFAULT v] [UNIQUE] [NOT NULL]``.

    Args:
        column: Column to render
        type_name: Dialect type keyword for the column
        auto_increment: Keyword emitted for auto-increment columns
        suppress_on_primary: Leave out UNIQUE and NOT NULL on primary key columns
        include_unique: Emit UNIQUE for unique columns
        name: Already quoted column name, defaults to the bare column name
    """
    parts = [name or column.name, type_name]
    if column.auto_increment and auto_increment:
        parts.append(auto_increment)
    if column.is_primary:
        parts.append("PRIMARY KEY")
    if column.default_value is not None:
        parts.append(f"DEFAULT {default_sql(column.default_value)}")
    if include_unique and column.is_unique and not (suppress_on_primary and column.is_primary):
        parts.append("UNIQUE")
    if column.is_nullable is False and not (suppress_on_primary and column.is_primary):
        parts.append("NOT NULL")
    return " ".join(parts)
