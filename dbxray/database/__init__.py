"""Database adapters for dbxray.

Every backend implements the same four operations (schema, execute,
tables and CREATE TABLE generation) over its own native driver.
"""

from .models import CatalogDefaults, Column, DbType, QueryResult, RowShape, Table
from .base import DatabaseAdapter
from .results import deserialize, normalize_cursor, normalize_documents, serialize
from .type_mappers import (
    TypeMapper,
    MySQLTypeMapper,
    PostgresTypeMapper,
    MSSQLTypeMapper,
    SnowflakeTypeMapper,
    RedshiftTypeMapper,
    BigQueryTypeMapper,
    MongoTypeMapper,
    DuckDBTypeMapper,
)
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .mssql import MSSQLAdapter
from .snowflake import SnowflakeAdapter
from .redshift import RedshiftAdapter
from .bigquery import BigQueryAdapter
from .mongodb import MongoDBAdapter
from .duckdb import DuckDBAdapter

__all__ = [
    # Data models
    "CatalogDefaults",
    "Column",
    "DbType",
    "QueryResult",
    "RowShape",
    "Table",
    # Base classes
    "DatabaseAdapter",
    # Result normalization
    "deserialize",
    "normalize_cursor",
    "normalize_documents",
    "serialize",
    # Type mappers
    "TypeMapper",
    "MySQLTypeMapper",
    "PostgresTypeMapper",
    "MSSQLTypeMapper",
    "SnowflakeTypeMapper",
    "RedshiftTypeMapper",
    "BigQueryTypeMapper",
    "MongoTypeMapper",
    "DuckDBTypeMapper",
    # Adapters
    "MySQLAdapter",
    "PostgresAdapter",
    "MSSQLAdapter",
    "SnowflakeAdapter",
    "RedshiftAdapter",
    "BigQueryAdapter",
    "MongoDBAdapter",
    "DuckDBAdapter",
]
