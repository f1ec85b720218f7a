"""Database-specific type mapping strategies.

Each mapper rewrites type spellings its dialect does not accept (aliases
or another engine's names) into the dialect's own keyword. Parameters such
as ``(255)`` or ``(10,2)`` are carried over to the mapped keyword.
Names a mapper does not know are returned unchanged.
"""

from abc import ABC
from typing import Dict, Optional, Tuple


def split_type(db_type: str) -> Tuple[str, str]:
    """Split a type spelling into its normalized base name and parameters.

    ``"varchar(255)"`` gives ``("VARCHAR", "(255)")`` and
    ``"timestamp(6) with time zone"`` gives
    ``("TIMESTAMP WITH TIME ZONE", "(6)")``.
    """
    text = db_type.strip()
    start = text.find("(")
    if start == -1:
        return " ".join(text.upper().split()), ""
    end = text.find(")", start)
    if end == -1:
        return " ".join(text.upper().split()), ""
    params = text[start:end + 1].replace(" ", "")
    base = f"{text[:start]} {text[end + 1:]}"
    return " ".join(base.upper().split()), params


class TypeMapper(ABC):
    """Base class for table-driven type mapping."""

    # Base type name -> dialect keyword
    TYPE_MAP: Dict[str, str] = {}

    def lookup(self, base: str) -> Optional[str]:
        return self.TYPE_MAP.get(base)

    def to_dialect_type(self, db_type: str) -> str:
        """Convert a type spelling to this dialect's keyword."""
        if not db_type:
            return db_type
        base, params = split_type(db_type)
        mapped = self.lookup(base)
        if mapped is None:
            return db_type
        # Keywords like NVARCHAR(MAX) already carry their own size
        if "(" in mapped or not params:
            return mapped
        return f"{mapped}{params}"


class MySQLTypeMapper(TypeMapper):
    """Type mapper for MySQL."""

    TYPE_MAP = {
        "BOOL": "TINYINT",
        "BOOLEAN": "TINYINT",
        "CHARACTER VARYING": "VARCHAR",
        "FIXED": "DECIMAL",
        "FLOAT4": "FLOAT",
        "FLOAT8": "DOUBLE",
        "INT1": "TINYINT",
        "INT2": "SMALLINT",
        "INT3": "MEDIUMINT",
        "INT4": "INT",
        "INT8": "BIGINT",
        "LONG VARBINARY": "MEDIUMBLOB",
        "LONG VARCHAR": "MEDIUMTEXT",
        "LONG": "MEDIUMTEXT",
        "MIDDLEINT": "MEDIUMINT",
        "NUMERIC": "DECIMAL",
    }


class PostgresTypeMapper(TypeMapper):
    """Type mapper for PostgreSQL."""

    TYPE_MAP = {
        "TINYINT": "SMALLINT",
        "MEDIUMINT": "INTEGER",
        "INT64": "BIGINT",
        "DOUBLE": "DOUBLE PRECISION",
        "FLOAT64": "DOUBLE PRECISION",
        "DATETIME": "TIMESTAMP",
        "DATETIME2": "TIMESTAMP",
        "NVARCHAR": "VARCHAR",
        "NCHAR": "CHAR",
        "STRING": "TEXT",
        "LONGTEXT": "TEXT",
        "MEDIUMTEXT": "TEXT",
        "TINYTEXT": "TEXT",
        "BLOB": "BYTEA",
        "LONGBLOB": "BYTEA",
        "BINARY": "BYTEA",
        "VARBINARY": "BYTEA",
        "VARBYTE": "BYTEA",
        "UNIQUEIDENTIFIER": "UUID",
        "SUPER": "JSONB",
    }


class MSSQLTypeMapper(TypeMapper):
    """Type mapper for Microsoft SQL Server."""

    TYPE_MAP = {
        "BOOL": "BIT",
        "BOOLEAN": "BIT",
        "SERIAL": "INT",
        "BIGSERIAL": "BIGINT",
        "INTEGER": "INT",
        "INT4": "INT",
        "INT8": "BIGINT",
        "INT64": "BIGINT",
        "DOUBLE": "FLOAT",
        "DOUBLE PRECISION": "FLOAT",
        "FLOAT8": "FLOAT",
        "FLOAT64": "FLOAT",
        "TEXT": "NVARCHAR(MAX)",
        "STRING": "NVARCHAR(MAX)",
        "JSON": "NVARCHAR(MAX)",
        "JSONB": "NVARCHAR(MAX)",
        "CHARACTER VARYING": "VARCHAR",
        "TIMESTAMP": "DATETIME2",
        "TIMESTAMP WITHOUT TIME ZONE": "DATETIME2",
        "TIMESTAMPTZ": "DATETIMEOFFSET",
        "TIMESTAMP WITH TIME ZONE": "DATETIMEOFFSET",
        "BYTEA": "VARBINARY(MAX)",
        "BLOB": "VARBINARY(MAX)",
        "UUID": "UNIQUEIDENTIFIER",
    }


class SnowflakeTypeMapper(TypeMapper):
    """Type mapper for Snowflake."""

    TYPE_MAP = {
        "SERIAL": "INT",
        "BIGSERIAL": "BIGINT",
        "INT64": "BIGINT",
        "FLOAT64": "FLOAT",
        "DOUBLE PRECISION": "DOUBLE",
        "BOOL": "BOOLEAN",
        "BYTEA": "BINARY",
        "BLOB": "BINARY",
        "JSON": "VARIANT",
        "JSONB": "VARIANT",
        "SUPER": "VARIANT",
        "UUID": "VARCHAR",
        "DATETIME2": "TIMESTAMP_NTZ",
        "TIMESTAMPTZ": "TIMESTAMP_TZ",
        "TIMESTAMP WITH TIME ZONE": "TIMESTAMP_TZ",
    }


class RedshiftTypeMapper(TypeMapper):
    """Type mapper for Amazon Redshift."""

    TYPE_MAP = {
        "SMALLINT": "SMALLINT",
        "INT2": "SMALLINT",
        "INTEGER": "INTEGER",
        "INT": "INTEGER",
        "INT4": "INTEGER",
        "BIGINT": "BIGINT",
        "INT8": "BIGINT",
        "DECIMAL": "DECIMAL",
        "NUMERIC": "DECIMAL",
        "REAL": "REAL",
        "FLOAT4": "REAL",
        "DOUBLE PRECISION": "DOUBLE PRECISION",
        "FLOAT8": "DOUBLE PRECISION",
        "FLOAT": "DOUBLE PRECISION",
        "CHAR": "CHAR",
        "CHARACTER": "CHAR",
        "NCHAR": "CHAR",
        "BPCHAR": "CHAR",
        "VARCHAR": "VARCHAR",
        "CHARACTER VARYING": "VARCHAR",
        "NVARCHAR": "VARCHAR",
        "TEXT": "VARCHAR",
        "DATE": "DATE",
        "TIME": "TIME",
        "TIME WITHOUT TIME ZONE": "TIME",
        "TIMETZ": "TIMETZ",
        "TIME WITH TIME ZONE": "TIMETZ",
        "TIMESTAMP": "TIMESTAMP",
        "TIMESTAMP WITHOUT TIME ZONE": "TIMESTAMP",
        "TIMESTAMPTZ": "TIMESTAMPTZ",
        "TIMESTAMP WITH TIME ZONE": "TIMESTAMPTZ",
        "INTERVAL YEAR TO MONTH": "INTERVAL YEAR TO MONTH",
        "INTERVAL DAY TO SECOND": "INTERVAL DAY TO SECOND",
        "BOOLEAN": "BOOLEAN",
        "BOOL": "BOOLEAN",
        "HLLSKETCH": "HLLSKETCH",
        "SUPER": "SUPER",
        "VARBYTE": "VARBYTE",
        "VARBINARY": "VARBYTE",
        "BINARY VARYING": "VARBYTE",
        "GEOMETRY": "GEOMETRY",
        "GEOGRAPHY": "GEOGRAPHY",
        "SERIAL": "INTEGER",
        "BIGSERIAL": "BIGINT",
        "JSON": "SUPER",
        "JSONB": "SUPER",
        "BYTEA": "VARBYTE",
    }


class BigQueryTypeMapper(TypeMapper):
    """Type mapper for Google BigQuery standard SQL."""

    TYPE_MAP = {
        "INT": "INT64",
        "INTEGER": "INT64",
        "SMALLINT": "INT64",
        "BIGINT": "INT64",
        "TINYINT": "INT64",
        "SERIAL": "INT64",
        "BIGSERIAL": "INT64",
        "INT4": "INT64",
        "INT8": "INT64",
        "FLOAT": "FLOAT64",
        "REAL": "FLOAT64",
        "DOUBLE": "FLOAT64",
        "DOUBLE PRECISION": "FLOAT64",
        "FLOAT8": "FLOAT64",
        "DECIMAL": "NUMERIC",
        "BOOLEAN": "BOOL",
        "VARCHAR": "STRING",
        "CHARACTER VARYING": "STRING",
        "NVARCHAR": "STRING",
        "CHAR": "STRING",
        "TEXT": "STRING",
        "UUID": "STRING",
        "BYTEA": "BYTES",
        "BLOB": "BYTES",
        "VARBINARY": "BYTES",
        "TIMESTAMPTZ": "TIMESTAMP",
        "TIMESTAMP WITH TIME ZONE": "TIMESTAMP",
        "JSONB": "JSON",
    }


class DuckDBTypeMapper(TypeMapper):
    """Type mapper for DuckDB."""

    TYPE_MAP = {
        "INT64": "BIGINT",
        "FLOAT64": "DOUBLE",
        "SERIAL": "INTEGER",
        "BIGSERIAL": "BIGINT",
        "NVARCHAR": "VARCHAR",
        "DATETIME2": "TIMESTAMP",
        "BYTEA": "BLOB",
        "VARBINARY": "BLOB",
        "JSONB": "JSON",
        "VARIANT": "JSON",
        "SUPER": "JSON",
    }


BSON_TYPES = {
    "double", "string", "object", "array", "binData", "objectId", "bool",
    "date", "null", "regex", "int", "timestamp", "long", "decimal",
}


class MongoTypeMapper(TypeMapper):
    """Maps SQL type names to MongoDB ``bsonType`` aliases."""

    def to_dialect_type(self, db_type: str) -> str:
        if db_type in BSON_TYPES:
            return db_type
        base, _ = split_type(db_type or "")

        if base in ("BIGINT", "INT8", "INT64", "BIGSERIAL", "LONG"):
            return "long"
        elif "INT" in base or base == "SERIAL":
            return "int"
        elif base in ("DECIMAL", "NUMERIC", "NUMBER", "FIXED"):
            return "decimal"
        elif any(t in base for t in ["FLOAT", "DOUBLE", "REAL"]):
            return "double"
        elif "BOOL" in base or base == "BIT":
            return "bool"
        elif "DATE" in base or "TIME" in base:
            return "date"
        elif any(t in base for t in ["BLOB", "BINARY", "BYTE"]):
            return "binData"
        elif base in ("JSON", "JSONB", "OBJECT", "STRUCT", "VARIANT", "SUPER", "RECORD"):
            return "object"
        elif "ARRAY" in base:
            return "array"
        elif base == "OBJECTID":
            return "objectId"
        return "string"
