"""Error types for dbxray."""

from typing import Optional, Dict, Any


class XrayError(Exception):
    """Base exception for dbxray errors."""

    def __init__(self, message: str, code: str = "XRAY_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for JSON output."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(XrayError):
    """Configuration is missing a field the backend requires."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ConnectionError(XrayError):
    """Error opening a connection to the database."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONNECTION_ERROR", details=details)


class CatalogError(XrayError):
    """Error reading table or column metadata from the catalog."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CATALOG_ERROR", details=details)


# Listing tables fails the same way describing one does.
ListError = CatalogError


class ExecutionError(XrayError):
    """The backend rejected or failed to run a query."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="EXECUTION_ERROR", details=details)


class ScanError(XrayError):
    """A row or value could not be read out of a result set.

    Raised instead of returning whatever rows were read before the failure.
    """

    def __init__(self, message: str, row_index: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        if row_index is not None:
            error_details["row_index"] = row_index
        super().__init__(message, code="SCAN_ERROR", details=error_details)
        self.row_index = row_index


class SerializationError(XrayError):
    """A query result could not be encoded or decoded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="SERIALIZATION_ERROR", details=details)


class UnsupportedBackendError(XrayError):
    """Database type tag is not one of the supported backends."""

    def __init__(self, db_type: str):
        super().__init__(
            f"Unsupported database type: {db_type}",
            code="UNSUPPORTED_BACKEND",
            details={"db_type": db_type},
        )
        self.db_type = db_type
