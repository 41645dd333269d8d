"""
tabquery - describe a query once, run it on an embedded or remote backend.

    from tabquery import QueryFacade, QueryBuilder, SchemaRegistry, col

    registry = SchemaRegistry()
    registry.register("patients", ["patient", "birthdate", "gender"], data=rows)

    facade = QueryFacade(registry)
    with facade.open({"kind": "embedded"}) as conn:
        result = conn.run(QueryBuilder().from_("patients").filter(col("gender") == "M").build())
"""

__version__ = "1.0.0"

from tabquery.domain.schema import SchemaRegistry, Table
from tabquery.domain.query import Column, QueryBuilder, QueryDescriptor, col
from tabquery.facade import Connection, QueryFacade
from tabquery.core.config import BackendConfig
from tabquery.shared.types import ResultSet
from tabquery.shared.exceptions import (
    TabularQueryError,
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
    "SchemaRegistry",
    "Table",
    "Column",
    "QueryBuilder",
    "QueryDescriptor",
    "col",
    "Connection",
    "QueryFacade",
    "BackendConfig",
    "ResultSet",
    "TabularQueryError",
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
