"""Operation logging service for dbxray.

Provides a high-level interface for recording adapter operations in the
SQLite operation log. Failures to write the log are reported as warnings
and never affect the operation being recorded.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dbxray.config import settings
from dbxray.errors import XrayError
from dbxray.logging.db import OperationLogDatabase

logger = logging.getLogger(__name__)

# Global service instance
_log_service: Optional["OperationLogService"] = None


def get_operation_log_service() -> "OperationLogService":
    """Get or create the global operation log service."""
    global _log_service
    if _log_service is None:
        _log_service = OperationLogService(
            db_path=settings.operation_logging_db_path,
            enabled=settings.operation_logging_enabled,
            retention_days=settings.operation_logging_retention_days,
        )
    return _log_service


def reset_operation_log_service() -> None:
    """Close and forget the global service so settings are re-read."""
    global _log_service
    if _log_service is not None:
        _log_service.close()
    _log_service = None


@dataclass
class OperationContext:
    """Context for one logged operation."""

    op_id: str
    db_type: str
    operation: str
    target: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    # Result summary, filled in by the caller
    row_count: Optional[int] = None
    column_count: Optional[int] = None
    table_count: Optional[int] = None


class OperationLogService:
    """High-level logger for adapter operations.

    Example usage:
        service = get_operation_log_service()

        with service.log_operation("postgres", "tables", target="shop") as ctx:
            names = adapter.tables("shop")
            ctx.table_count = len(names)
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        enabled: bool = True,
        retention_days: int = 30,
        max_target_size: Optional[int] = None,
    ):
        """Initialize the operation log service.

        Args:
            db_path: Path to the SQLite database. If None, uses default.
            enabled: Whether logging is enabled.
            retention_days: Entries older than this are removed on startup.
            max_target_size: Longest query text stored per entry.
        """
        self.enabled = enabled
        self.max_target_size = max_target_size or settings.operation_logging_max_query_size
        self._db: Optional[OperationLogDatabase] = None

        if self.enabled:
            try:
                self._db = OperationLogDatabase(db_path)
                self._db.initialize()
                self._db.cleanup_old_operations(retention_days)
            except Exception as e:
                logger.warning("Failed to initialize operation logging: %s", e)
                self.enabled = False
                self._db = None

    @property
    def db(self) -> Optional[OperationLogDatabase]:
        """Get the database instance."""
        return self._db

    def _truncate(self, target: Optional[str]) -> Optional[str]:
        if target is not None and len(target) > self.max_target_size:
            return target[:self.max_target_size] + "..."
        return target

    @contextmanager
    def log_operation(self, db_type: str, operation: str, target: Optional[str] = None):
        """Context manager recording one operation.

        Args:
            db_type: Backend tag
            operation: Operation name
            target: Table name, database name or query text

        Yields:
            OperationContext that can be updated with a result summary
        """
        ctx = OperationContext(
            op_id=uuid.uuid4().hex[:12],
            db_type=db_type,
            operation=operation,
            target=target,
        )

        if not self.enabled or self._db is None:
            yield ctx
            return

        try:
            self._db.insert_operation(
                op_id=ctx.op_id,
                db_type=db_type,
                operation=operation,
                target=self._truncate(target),
            )
        except Exception as e:
            logger.warning("Failed to log operation start: %s", e)

        try:
            yield ctx
        except Exception as e:
            duration_ms = int((time.time() - ctx.start_time) * 1000)
            try:
                self._db.update_error(
                    op_id=ctx.op_id,
                    error_message=str(e),
                    error_type=type(e).__name__,
                    error_code=e.code if isinstance(e, XrayError) else None,
                    duration_ms=duration_ms,
                )
            except Exception as log_err:
                logger.warning("Failed to log operation error: %s", log_err)
            raise

        duration_ms = int((time.time() - ctx.start_time) * 1000)
        try:
            self._db.update_success(
                op_id=ctx.op_id,
                duration_ms=duration_ms,
                row_count=ctx.row_count,
                column_count=ctx.column_count,
                table_count=ctx.table_count,
            )
        except Exception as e:
            logger.warning("Failed to log operation result: %s", e)

    def query_operations(
        self,
        db_type: Optional[str] = None,
        operation: Optional[str] = None,
        status: Optional[str] = None,
        since_hours: int = 24,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Query logged operations with optional filters."""
        if not self.enabled or not self._db:
            return []

        return self._db.query_operations(
            db_type=db_type,
            operation=operation,
            status=status,
            since_hours=since_hours,
            limit=limit,
        )

    def get_stats(self, since_hours: int = 24) -> Dict[str, Any]:
        """Get statistics about logged operations."""
        if not self.enabled or not self._db:
            return {"error": "Logging not enabled"}

        return self._db.get_stats(since_hours=since_hours)

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
