"""Operation logging for dbxray.

Wraps adapters with timing and log output, and records each operation in
a local SQLite database for later inspection.
"""

from dbxray.logging.db import OperationLogDatabase, get_default_operation_db_path
from dbxray.logging.service import (
    OperationLogService,
    get_operation_log_service,
    reset_operation_log_service,
)
from dbxray.logging.observer import ObservedClient

__all__ = [
    "OperationLogDatabase",
    "get_default_operation_db_path",
    "OperationLogService",
    "get_operation_log_service",
    "reset_operation_log_service",
    "ObservedClient",
]
