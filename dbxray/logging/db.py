"""Database operations for the operation log."""

import sqlite3
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


# SQL schema for operation logging
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS operations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    op_id TEXT UNIQUE NOT NULL,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    db_type TEXT NOT NULL,
    operation TEXT NOT NULL,  -- 'schema', 'execute', 'query', 'tables', 'generate_create_table_query'
    target TEXT,  -- table name, database name or query text
    status TEXT DEFAULT 'started',  -- 'started', 'success', 'error'
    duration_ms INTEGER,

    -- Result summary
    row_count INTEGER,
    column_count INTEGER,
    table_count INTEGER,

    -- Error information
    error_message TEXT,
    error_type TEXT,
    error_code TEXT
);

CREATE INDEX IF NOT EXISTS idx_operations_timestamp ON operations(timestamp);
CREATE INDEX IF NOT EXISTS idx_operations_op_id ON operations(op_id);
CREATE INDEX IF NOT EXISTS idx_operations_status ON operations(status);
CREATE INDEX IF NOT EXISTS idx_operations_db_type ON operations(db_type);
"""


def get_default_operation_db_path() -> str:
    """Get the default database path (~/.dbxray/operations.db)."""
    home = Path.home()
    xray_dir = home / ".dbxray"
    xray_dir.mkdir(exist_ok=True)
    return str(xray_dir / "operations.db")


def _sqlite_timestamp(moment: datetime) -> str:
    # Same layout SQLite uses for CURRENT_TIMESTAMP
    return moment.strftime("%Y-%m-%d %H:%M:%S")


class OperationLogDatabase:
    """SQLite database for the operation log."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses default.
        """
        self.db_path = db_path or get_default_operation_db_path()
        self._connection: Optional[sqlite3.Connection] = None
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                isolation_level=None,  # Auto-commit mode
            )
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        try:
            conn = self._get_connection()
            conn.executescript(SCHEMA_SQL)
            self._initialized = True
            logger.debug("Operation log database initialized at %s", self.db_path)
        except Exception as e:
            logger.error("Failed to initialize operation log database: %s", e)
            raise

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            self._initialized = False

    def insert_operation(
        self,
        op_id: str,
        db_type: str,
        operation: str,
        target: Optional[str] = None,
    ) -> int:
        """Insert a new operation entry.

        Args:
            op_id: Unique identifier for this operation
            db_type: Backend tag ('mysql', 'bigquery', ...)
            operation: Operation name
            target: Table name, database name or query text

        Returns:
            The row ID of the inserted entry
        """
        self.initialize()
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO operations (op_id, db_type, operation, target, status)
            VALUES (?, ?, ?, ?, 'started')
            """,
            (op_id, db_type, operation, target),
        )
        return cursor.lastrowid

    def update_success(
        self,
        op_id: str,
        duration_ms: int,
        row_count: Optional[int] = None,
        column_count: Optional[int] = None,
        table_count: Optional[int] = None,
    ) -> None:
        """Mark an operation as successful and store its result summary."""
        conn = self._get_connection()
        conn.execute(
            """
            UPDATE operations
            SET status = 'success', duration_ms = ?, row_count = ?,
                column_count = ?, table_count = ?
            WHERE op_id = ?
            """,
            (duration_ms, row_count, column_count, table_count, op_id),
        )

    def update_error(
        self,
        op_id: str,
        error_message: str,
        error_type: Optional[str] = None,
        error_code: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Mark an operation as failed with error details."""
        conn = self._get_connection()
        conn.execute(
            """
            UPDATE operations
            SET status = 'error', error_message = ?, error_type = ?,
                error_code = ?, duration_ms = ?
            WHERE op_id = ?
            """,
            (error_message, error_type, error_code, duration_ms, op_id),
        )

    def query_operations(
        self,
        db_type: Optional[str] = None,
        operation: Optional[str] = None,
        status: Optional[str] = None,
        since_hours: int = 24,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Query operation entries with optional filters.

        Args:
            db_type: Filter by backend
            operation: Filter by operation name
            status: Filter by status
            since_hours: Look back N hours (default 24)
            limit: Maximum number of results
            offset: Offset for pagination

        Returns:
            List of operation entries as dictionaries, newest first
        """
        self.initialize()
        conn = self._get_connection()

        conditions = []
        params: List[Any] = []

        since_time = datetime.now(timezone.utc) - timedelta(hours=since_hours)
        conditions.append("timestamp >= ?")
        params.append(_sqlite_timestamp(since_time))

        if db_type:
            conditions.append("db_type = ?")
            params.append(db_type)

        if operation:
            conditions.append("operation = ?")
            params.append(operation)

        if status:
            conditions.append("status = ?")
            params.append(status)

        where_clause = " AND ".join(conditions)
        params.extend([limit, offset])

        cursor = conn.execute(
            f"""
            SELECT * FROM operations
            WHERE {where_clause}
            ORDER BY id DESC
            LIMIT ? OFFSET ?
            """,
            params,
        )
        return [dict(row) for row in cursor.fetchall()]

    def get_operation(self, op_id: str) -> Optional[Dict[str, Any]]:
        """Get a single operation by its ID."""
        self.initialize()
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM operations WHERE op_id = ?", (op_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def get_stats(self, since_hours: int = 24) -> Dict[str, Any]:
        """Get per-operation counts and average durations.

        Args:
            since_hours: Look back N hours

        Returns:
            Dictionary with totals and a per-operation breakdown
        """
        self.initialize()
        conn = self._get_connection()
        since = _sqlite_timestamp(datetime.now(timezone.utc) - timedelta(hours=since_hours))

        cursor = conn.execute(
            """
            SELECT operation,
                   COUNT(*) AS total,
                   SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) AS succeeded,
                   SUM(CASE WHEN status = 'error' THEN 1 ELSE 0 END) AS failed,
                   AVG(duration_ms) AS avg_duration_ms
            FROM operations
            WHERE timestamp >= ?
            GROUP BY operation
            ORDER BY operation
            """,
            (since,),
        )
        by_operation = {
            row["operation"]: {
                "total": row["total"],
                "succeeded": row["succeeded"],
                "failed": row["failed"],
                "avg_duration_ms": row["avg_duration_ms"],
            }
            for row in cursor.fetchall()
        }
        return {
            "since_hours": since_hours,
            "total": sum(v["total"] for v in by_operation.values()),
            "by_operation": by_operation,
        }

    def cleanup_old_operations(self, retention_days: int = 30) -> int:
        """Delete entries older than the retention period.

        Returns:
            Number of deleted entries
        """
        self.initialize()
        conn = self._get_connection()
        cutoff = _sqlite_timestamp(datetime.now(timezone.utc) - timedelta(days=retention_days))
        cursor = conn.execute("DELETE FROM operations WHERE timestamp < ?", (cutoff,))
        deleted = cursor.rowcount
        if deleted:
            logger.debug("Removed %d operation log entries older than %d days", deleted, retention_days)
        return deleted
