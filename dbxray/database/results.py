"""Turn driver result sets into QueryResult values and back into bytes.

Every adapter funnels its rows through here so that values come out in a
small set of JSON-friendly types and the wire envelope is the same for all
backends.
"""

import base64
import binascii
import datetime
import json
import logging
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from ..errors import ScanError, SerializationError
from .models import QueryResult, RowShape

logger = logging.getLogger(__name__)

PostProcessor = Callable[[Any], Any]

# Marker used on the wire for binary values
BINARY_KEY = "$binary"


def coerce_scalar(value: Any) -> Any:
    """Convert a driver value to None, bool, int, float, str, bytes, list or dict.

    Raises:
        TypeError: If the value has no canonical representation
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, bytes):
        return bytes(value)
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, dict):
        return {str(k): coerce_scalar(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [coerce_scalar(v) for v in value]
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def utf8_bytes_to_str(value: Any) -> Any:
    """Decode byte values that hold valid UTF-8 text."""
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value
    return value


def decode_base64_text(value: Any) -> Any:
    """Decode string values that are base64 for printable UTF-8 text.

    Anything else is returned unchanged.
    """
    if not isinstance(value, str) or len(value) < 4 or len(value) % 4:
        return value
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return value
    if not decoded.isprintable():
        return value
    return decoded


def _apply(value: Any, post_process: Optional[PostProcessor]) -> Any:
    value = coerce_scalar(value)
    if post_process is not None:
        value = post_process(value)
    return value


def _fetch_rows(cursor) -> Iterator[Sequence[Any]]:
    while True:
        row = cursor.fetchone()
        if row is None:
            return
        yield row


def normalize_cursor(cursor, post_process: Optional[PostProcessor] = None) -> QueryResult:
    """Read a DB-API cursor into a positional QueryResult.

    Column names come from ``cursor.description``. Rows are fetched one at
    a time; a failure on any row discards everything read so far.

    Raises:
        ScanError: If a row cannot be fetched or a value cannot be coerced
    """
    description = cursor.description
    if description is None:
        # Statement without a result set (DDL, DML)
        return QueryResult(columns=[], rows=[])

    columns = [str(d[0]) for d in description]
    return normalize_rows(columns, _fetch_rows(cursor), post_process=post_process)


def normalize_rows(
    columns: List[str],
    raw_rows: Iterable[Sequence[Any]],
    post_process: Optional[PostProcessor] = None,
) -> QueryResult:
    """Read an iterable of value sequences into a positional QueryResult.

    Raises:
        ScanError: If iteration fails, a row has the wrong width, or a value
            cannot be coerced
    """
    width = len(columns)
    rows: List[List[Any]] = []
    index = 0
    try:
        for raw in raw_rows:
            if len(raw) != width:
                raise ScanError(
                    f"Row {index} has {len(raw)} values, expected {width}",
                    row_index=index,
                )
            rows.append([_apply(v, post_process) for v in raw])
            index += 1
    except ScanError:
        raise
    except Exception as e:
        raise ScanError(f"Failed to read row {index}: {e}", row_index=index) from e

    return QueryResult(columns=columns, rows=rows, shape=RowShape.POSITIONAL)


def normalize_documents(
    documents: Iterable[Dict[str, Any]],
    post_process: Optional[PostProcessor] = None,
) -> QueryResult:
    """Read an iterable of mappings into a named QueryResult.

    Columns are the union of keys in first-seen order. Rows missing a key
    get None for it.

    Raises:
        ScanError: If iteration fails or a value cannot be coerced
    """
    columns: List[str] = []
    seen = set()
    rows: List[Dict[str, Any]] = []
    index = 0
    try:
        for document in documents:
            row = {}
            for key, value in document.items():
                key = str(key)
                if key not in seen:
                    seen.add(key)
                    columns.append(key)
                row[key] = _apply(value, post_process)
            rows.append(row)
            index += 1
    except Exception as e:
        raise ScanError(f"Failed to read document {index}: {e}", row_index=index) from e

    for row in rows:
        for col in columns:
            row.setdefault(col, None)
    return QueryResult(columns=columns, rows=rows, shape=RowShape.NAMED)


def _encode_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return {BINARY_KEY: base64.b64encode(value).decode("ascii")}
    if isinstance(value, list):
        return [_encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _encode_value(v) for k, v in value.items()}
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and BINARY_KEY in value:
            return base64.b64decode(value[BINARY_KEY])
        return {k: _decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode_value(v) for v in value]
    return value


def serialize(result: QueryResult) -> bytes:
    """Encode a QueryResult as a UTF-8 JSON envelope.

    Raises:
        SerializationError: If a value cannot be encoded
    """
    envelope = {
        "columns": result.columns,
        "rows": [_encode_value(row) for row in result.rows],
        "time": result.time,
        "error": result.error,
        "shape": RowShape(result.shape).value,
    }
    try:
        return json.dumps(envelope, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize query result: {e}") from e


def detect_shape(data: Any) -> RowShape:
    """Work out the row shape of an envelope that does not declare one."""
    if isinstance(data, list):
        return RowShape.NAMED
    rows = data.get("rows") or []
    if rows and isinstance(rows[0], dict):
        return RowShape.NAMED
    return RowShape.POSITIONAL


def deserialize(data: bytes) -> QueryResult:
    """Decode bytes produced by :func:`serialize`.

    A bare JSON list of objects is also accepted and read as named rows.

    Raises:
        SerializationError: If the bytes are not a valid envelope
    """
    try:
        payload = json.loads(data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data)
    except (UnicodeDecodeError, ValueError) as e:
        raise SerializationError(f"Invalid query result payload: {e}") from e

    if isinstance(payload, list):
        try:
            return normalize_documents(_decode_value(payload))
        except (ScanError, AttributeError, ValueError, TypeError, binascii.Error) as e:
            raise SerializationError(f"Invalid row list: {e}") from e

    if not isinstance(payload, dict):
        raise SerializationError("Query result payload must be a JSON object")

    try:
        shape = RowShape(payload["shape"]) if "shape" in payload else detect_shape(payload)
        return QueryResult(
            columns=list(payload.get("columns") or []),
            rows=[_decode_value(row) for row in payload.get("rows") or []],
            time=int(payload.get("time") or 0),
            error=payload.get("error") or "",
            shape=shape,
        )
    except (ValueError, AttributeError, TypeError, binascii.Error) as e:
        raise SerializationError(f"Invalid query result payload: {e}") from e
