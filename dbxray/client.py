"""Client registry: build an adapter for a backend tag."""

import logging
from typing import Any, Dict, Optional, Type, Union

from .config import DatabaseConfig, settings
from .database import (
    BigQueryAdapter,
    DatabaseAdapter,
    DbType,
    DuckDBAdapter,
    MongoDBAdapter,
    MSSQLAdapter,
    MySQLAdapter,
    PostgresAdapter,
    RedshiftAdapter,
    SnowflakeAdapter,
)
from .logging import ObservedClient

logger = logging.getLogger(__name__)


ADAPTERS: Dict[DbType, Type[DatabaseAdapter]] = {
    DbType.MYSQL: MySQLAdapter,
    DbType.POSTGRES: PostgresAdapter,
    DbType.SNOWFLAKE: SnowflakeAdapter,
    DbType.BIGQUERY: BigQueryAdapter,
    DbType.REDSHIFT: RedshiftAdapter,
    DbType.MSSQL: MSSQLAdapter,
    DbType.MONGODB: MongoDBAdapter,
    DbType.DUCKDB: DuckDBAdapter,
}

_unregistered = set(DbType) - set(ADAPTERS)
if _unregistered:
    raise RuntimeError(f"No adapter registered for: {sorted(t.value for t in _unregistered)}")


def adapter_class(db_type: Union[DbType, str]) -> Type[DatabaseAdapter]:
    """Return the adapter class for a backend tag.

    Raises:
        UnsupportedBackendError: If the tag names no known backend
    """
    return ADAPTERS[DbType.parse(db_type)]


def _wrap(adapter: DatabaseAdapter, observe: Optional[bool]):
    if observe is None:
        observe = settings.observability_enabled
    if observe:
        return ObservedClient(adapter)
    return adapter


def new_client_with_config(
    config: DatabaseConfig,
    db_type: Union[DbType, str, None] = None,
    observe: Optional[bool] = None,
):
    """Open a connection from a config and return a client for it.

    Args:
        config: Connection parameters
        db_type: Backend tag; defaults to ``config.db_type``
        observe: Wrap the client with timing/logging (default from settings)

    Raises:
        UnsupportedBackendError: If the tag names no known backend
        ConfigError: If the config lacks a field the backend requires
        ConnectionError: If the connection cannot be opened
    """
    cls = adapter_class(db_type if db_type is not None else (config.db_type or ""))
    logger.debug("Creating %s client", cls.DB_TYPE.value)
    return _wrap(cls.from_config(config), observe)


def new_client(
    connection: Any,
    db_type: Union[DbType, str],
    config: Optional[DatabaseConfig] = None,
    observe: Optional[bool] = None,
):
    """Return a client around an already open native connection.

    Raises:
        UnsupportedBackendError: If the tag names no known backend
    """
    cls = adapter_class(db_type)
    return _wrap(cls(connection, config), observe)


def ddl_generator(db_type: Union[DbType, str], config: Optional[DatabaseConfig] = None) -> DatabaseAdapter:
    """Return an adapter with no connection, for CREATE TABLE generation only."""
    return adapter_class(db_type)(None, config)
