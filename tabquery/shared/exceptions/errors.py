"""
tabquery - Structured Error Handling

Every failure surfaced by the registry, the builder, the adapters and the
facade is one of the typed errors below.

ERROR DESIGN PRINCIPLES:
------------------------
1. Every error has a unique code for log searching
2. Messages name the offending table, column or connection
3. Backend errors keep the native error text unmodified
4. Nothing is retried automatically and nothing falls back to another backend

ERROR DICT FORMAT:
------------------
{
    "error": {
        "code": "ERR_2002",
        "message": "Table 'encounters' is not registered",
        "details": {
            "table": "encounters",
            "available_tables": ["patients"]
        },
        "suggestion": "Register 'encounters' before querying it"
    }
}
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCode(str, Enum):
    """Unique error codes for every error type."""

    # Configuration (1xxx)
    ERR_CONFIG_INVALID = "ERR_1001"

    # Schema registry (2xxx)
    ERR_TABLE_DUPLICATE = "ERR_2001"
    ERR_TABLE_NOT_FOUND = "ERR_2002"
    ERR_COLUMN_NOT_FOUND = "ERR_2003"

    # Query validation (3xxx)
    ERR_QUERY_INVALID = "ERR_3001"
    ERR_QUERY_INCOMPLETE = "ERR_3002"

    # Connection (4xxx)
    ERR_CONNECTION_FAILED = "ERR_4001"
    ERR_CONNECTION_CLOSED = "ERR_4002"
    ERR_QUERY_TIMEOUT = "ERR_4003"

    # Backend execution (5xxx)
    ERR_BACKEND_EXECUTION = "ERR_5001"

    # Internal (9xxx)
    ERR_INTERNAL = "ERR_9001"


# =============================================================================
# BASE ERROR
# =============================================================================

class TabularQueryError(Exception):
    """
    Structured error with all context needed for debugging.

    Attributes:
        code: Unique error code for searching logs
        message: Human-readable error message
        details: Additional context (dict)
        suggestion: How to fix the issue
    """

    code: ErrorCode = ErrorCode.ERR_INTERNAL

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a structured error payload."""
        error_dict: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
        }

        if self.details:
            error_dict["details"] = self.details

        if self.suggestion:
            error_dict["suggestion"] = self.suggestion

        return {"error": error_dict}

    def log(self, level: str = "error") -> None:
        """Log the error with context."""
        log_msg = f"[{self.code.value}] {self.message}"
        if self.details:
            log_msg += f" | details={self.details}"

        getattr(logger, level)(log_msg)


# =============================================================================
# CONFIGURATION
# =============================================================================

class ConfigurationError(TabularQueryError):
    """Backend configuration passed to open(), or a catalog file, is invalid."""

    code = ErrorCode.ERR_CONFIG_INVALID


# =============================================================================
# SCHEMA REGISTRY
# =============================================================================

class DuplicateTable(TabularQueryError):
    """A table with this name is already registered."""

    code = ErrorCode.ERR_TABLE_DUPLICATE

    def __init__(self, table: str, existing_columns: Optional[List[str]] = None):
        details: Dict[str, Any] = {"table": table}
        if existing_columns is not None:
            details["existing_columns"] = list(existing_columns)

        super().__init__(
            f"Table '{table}' is already registered",
            details=details,
            suggestion=(
                f"Deregister '{table}' first, or enable allow_re_register "
                "to accept identical re-registrations"
            ),
        )
        self.table = table


class UnknownTable(TabularQueryError):
    """The table is not present in the schema registry."""

    code = ErrorCode.ERR_TABLE_NOT_FOUND

    def __init__(self, table: str, available_tables: Optional[List[str]] = None):
        details: Dict[str, Any] = {"table": table}

        suggestion = f"Register '{table}' before querying it"
        if available_tables:
            # Show up to 10 available tables
            details["available_tables"] = available_tables[:10]
            similar = [t for t in available_tables if table.lower() in t.lower()]
            if similar:
                suggestion += f". Did you mean: {', '.join(similar[:3])}?"

        super().__init__(
            f"Table '{table}' is not registered",
            details=details,
            suggestion=suggestion,
        )
        self.table = table


class UnknownColumn(TabularQueryError):
    """A referenced column does not exist in the tables of the query."""

    code = ErrorCode.ERR_COLUMN_NOT_FOUND

    def __init__(self, column: str, tables: List[str], available_columns: Optional[List[str]] = None):
        details: Dict[str, Any] = {"column": column, "tables": list(tables)}
        if available_columns:
            details["available_columns"] = available_columns[:20]

        super().__init__(
            f"Column '{column}' not found in table(s) {', '.join(repr(t) for t in tables)}",
            details=details,
            suggestion="Check the column names registered for the tables in the query",
        )
        self.column = column
        self.tables = list(tables)


# =============================================================================
# QUERY VALIDATION
# =============================================================================

class InvalidQuery(TabularQueryError):
    """The query descriptor is malformed."""

    code = ErrorCode.ERR_QUERY_INVALID


class IncompleteQuery(InvalidQuery):
    """build() was called before a source table was set."""

    code = ErrorCode.ERR_QUERY_INCOMPLETE


# =============================================================================
# CONNECTION & EXECUTION
# =============================================================================

class ConnectionError(TabularQueryError):
    """The backend connection is not open, failed, or timed out."""

    code = ErrorCode.ERR_CONNECTION_FAILED

    def __init__(
        self,
        message: str,
        engine: str = "",
        original_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if engine:
            details.setdefault("engine", engine)
        super().__init__(message, details=details)
        self.engine = engine
        self.original_error = original_error


class QueryTimeout(ConnectionError):
    """The remote backend did not answer within the configured timeout."""

    code = ErrorCode.ERR_QUERY_TIMEOUT

    def __init__(self, engine: str, timeout_seconds: float):
        super().__init__(
            f"{engine} did not respond within {timeout_seconds}s",
            engine=engine,
            details={"timeout_seconds": timeout_seconds},
        )
        self.suggestion = "Raise timeoutSeconds in the backend config, or check that the server is reachable"
        self.timeout_seconds = timeout_seconds


class ConnectionClosed(TabularQueryError):
    """An operation was attempted on a connection that was already closed."""

    code = ErrorCode.ERR_CONNECTION_CLOSED

    def __init__(self, connection_id: str):
        super().__init__(
            f"Connection '{connection_id}' is closed",
            details={"connection": connection_id},
            suggestion="Open a new connection with QueryFacade.open()",
        )
        self.connection_id = connection_id


class BackendExecutionError(TabularQueryError):
    """
    The backend rejected or failed the query.

    The native error is kept as ``original_error`` and its text is carried
    verbatim in ``native_message``.
    """

    code = ErrorCode.ERR_BACKEND_EXECUTION

    def __init__(
        self,
        engine: str,
        original_error: BaseException,
        sql: Optional[str] = None,
    ):
        native_message = str(original_error)
        details: Dict[str, Any] = {"engine": engine, "native_error": native_message}
        if sql:
            details["sql"] = sql

        super().__init__(f"{engine} query failed: {native_message}", details=details)
        self.engine = engine
        self.original_error = original_error
        self.native_message = native_message
        self.sql = sql
