"""MongoDB adapter.

Collections stand in for tables. A collection has no declared schema, so
:meth:`MongoDBAdapter.schema` infers one from sampled documents, and
queries are JSON command documents rather than SQL.
"""

import datetime
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from ..config import DatabaseConfig
from ..errors import CatalogError, ExecutionError
from .base import DatabaseAdapter
from .models import Column, DbType, QueryResult, Table, ROW_STORE_DEFAULTS
from .results import normalize_documents
from .type_mappers import MongoTypeMapper

logger = logging.getLogger(__name__)

MIXED_TYPE = "mixed"


def build_uri(config: DatabaseConfig) -> str:
    port = config.port or MongoDBAdapter.DEFAULT_PORT
    password = config.password_value()
    if config.username and password:
        auth = f"{quote_plus(config.username)}:{quote_plus(password)}@"
    else:
        auth = ""
    return f"mongodb://{auth}{config.host}:{port}"


def bson_type_name(value: Any) -> str:
    """Return the ``$type`` alias MongoDB uses for a decoded value."""
    from bson import Binary, Decimal128, Int64, ObjectId, Regex, Timestamp

    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, Int64):
        return "long"
    if isinstance(value, int):
        return "int" if -2 ** 31 <= value < 2 ** 31 else "long"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, ObjectId):
        return "objectId"
    if isinstance(value, datetime.datetime):
        return "date"
    if isinstance(value, Timestamp):
        return "timestamp"
    if isinstance(value, Decimal128):
        return "decimal"
    if isinstance(value, (bytes, Binary)):
        return "binData"
    if isinstance(value, Regex):
        return "regex"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def plain_value(value: Any) -> Any:
    """Convert BSON-specific values into plain Python ones."""
    from bson import Binary, Decimal128, ObjectId, Regex, Timestamp

    if isinstance(value, (ObjectId, Decimal128)):
        return str(value)
    if isinstance(value, Timestamp):
        return value.as_datetime().isoformat()
    if isinstance(value, Regex):
        return value.pattern
    if isinstance(value, Binary):
        return bytes(value)
    if isinstance(value, dict):
        return {k: plain_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain_value(v) for v in value]
    return value


class MongoDBAdapter(DatabaseAdapter):
    """Adapter for MongoDB over pymongo."""

    DB_TYPE = DbType.MONGODB
    REQUIRED_FIELDS = ("host", "database")
    REQUIRES_PASSWORD = False
    # MongoClient manages its own pool and is thread-safe
    THREAD_SAFE = True
    CATALOG_DEFAULTS = ROW_STORE_DEFAULTS
    TYPE_MAPPER = MongoTypeMapper()

    DEFAULT_PORT = 27017

    @classmethod
    def connect(cls, config: DatabaseConfig):
        try:
            from pymongo import MongoClient
        except ImportError:
            raise ImportError(
                "pymongo is required for MongoDB connections. "
                "Install it with: pip install pymongo"
            )

        kwargs = {}
        if config.ssl:
            kwargs["tls"] = True
        if config.query_timeout_seconds:
            kwargs["serverSelectionTimeoutMS"] = int(config.query_timeout_seconds * 1000)

        client = MongoClient(build_uri(config), **kwargs)
        # MongoClient connects lazily; fail here rather than on first use
        client.admin.command("ping")
        return client

    @property
    def database(self):
        return self.connection[self.config.database]

    def _schema(self, table_name: str) -> Table:
        db = self.database
        if table_name not in db.list_collection_names(filter={"name": table_name}):
            raise CatalogError(
                f"Collection not found: {table_name}",
                details={"table_name": table_name},
            )

        sample_size = max(1, self.config.sample_size)
        documents = list(db[table_name].find({}, limit=sample_size))

        order: List[str] = []
        types: Dict[str, List[str]] = {}
        seen_in: Dict[str, int] = {}
        for document in documents:
            for key, value in document.items():
                if key not in types:
                    order.append(key)
                    types[key] = []
                    seen_in[key] = 0
                seen_in[key] += 1
                name = bson_type_name(value)
                if name not in types[key]:
                    types[key].append(name)

        columns = []
        for position, key in enumerate(order, start=1):
            found = [t for t in types[key] if t != "null"]
            nullable: Optional[bool] = None
            if "null" in types[key] or seen_in[key] < len(documents):
                nullable = True
            metatags = []
            if len(found) > 1:
                type_name = MIXED_TYPE
                metatags.append("types:" + "|".join(found))
            else:
                type_name = found[0] if found else "null"
            columns.append(Column(
                name=key,
                type=type_name,
                is_nullable=False if key == "_id" else nullable,
                is_primary=key == "_id",
                is_unique=True if key == "_id" else None,
                ordinal_position=position,
                metatags=metatags,
            ))
        return Table(name=table_name, columns=columns, dataset=self.config.database)

    def _query(self, query: str) -> QueryResult:
        from bson import json_util

        try:
            command = json_util.loads(query)
        except (ValueError, TypeError) as e:
            raise ExecutionError(f"Query must be a JSON command document: {e}", details={"query": query}) from e
        if not isinstance(command, dict) or not command:
            raise ExecutionError("Query must be a non-empty JSON object", details={"query": query})

        db = self.database
        max_time_ms = int(self.config.query_timeout_seconds * 1000) if self.config.query_timeout_seconds else None

        if "find" in command:
            kwargs = {}
            for key in ("projection", "sort", "skip", "limit"):
                if key in command:
                    kwargs[key] = command[key]
            if "sort" in kwargs and isinstance(kwargs["sort"], dict):
                kwargs["sort"] = list(kwargs["sort"].items())
            cursor = db[command["find"]].find(command.get("filter", {}), **kwargs)
            if max_time_ms:
                cursor = cursor.max_time_ms(max_time_ms)
            documents = cursor
        elif "aggregate" in command:
            kwargs = {"maxTimeMS": max_time_ms} if max_time_ms else {}
            documents = db[command["aggregate"]].aggregate(command.get("pipeline", []), **kwargs)
        else:
            if max_time_ms and "maxTimeMS" not in command:
                command["maxTimeMS"] = max_time_ms
            response = db.command(command)
            batch = (response.get("cursor") or {}).get("firstBatch")
            documents = batch if batch is not None else [response]

        return normalize_documents(plain_value(doc) for doc in documents)

    def _tables(self, database_name: str) -> List[str]:
        return self.connection[database_name].list_collection_names(filter={"type": "collection"})

    def generate_create_table_query(self, table: Table) -> str:
        """Render a ``create`` command with a ``$jsonSchema`` validator."""
        properties: Dict[str, Any] = {}
        required = []
        for col in table.columns:
            prop: Dict[str, Any] = {}
            if col.type != MIXED_TYPE:
                bson_type = self.type_mapper.to_dialect_type(col.type)
                prop["bsonType"] = [bson_type, "null"] if col.is_nullable and bson_type != "null" else bson_type
            if col.description:
                prop["description"] = col.description
            properties[col.name] = prop
            if col.is_primary or col.is_nullable is False:
                required.append(col.name)

        schema: Dict[str, Any] = {"bsonType": "object"}
        if required:
            schema["required"] = required
        schema["properties"] = properties
        return json.dumps({"create": table.name, "validator": {"$jsonSchema": schema}})
