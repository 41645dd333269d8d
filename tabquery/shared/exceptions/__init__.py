"""
Shared Exceptions

Library-wide exception classes.
"""

from tabquery.shared.exceptions.errors import (
    TabularQueryError,
    ErrorCode,
    ConfigurationError,
    DuplicateTable,
    UnknownTable,
    UnknownColumn,
    InvalidQuery,
    IncompleteQuery,
    ConnectionError,
    QueryTimeout,
    ConnectionClosed,
    BackendExecutionError,
)

__all__ = [
    "TabularQueryError",
    "ErrorCode",
    "ConfigurationError",
    "DuplicateTable",
    "UnknownTable",
    "UnknownColumn",
    "InvalidQuery",
    "IncompleteQuery",
    "ConnectionError",
    "QueryTimeout",
    "ConnectionClosed",
    "BackendExecutionError",
]
