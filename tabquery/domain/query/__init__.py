"""
Query Domain

Query descriptors, the fluent builder, and SQL translation.
"""

from tabquery.domain.query.descriptor import (
    Column,
    Join,
    Predicate,
    QueryDescriptor,
    QueryBuilder,
    col,
    from_,
    select,
)
from tabquery.domain.query.builder import SQLBuilder, ResolvedQuery, resolve

__all__ = [
    "Column",
    "Join",
    "Predicate",
    "QueryDescriptor",
    "QueryBuilder",
    "col",
    "from_",
    "select",
    "SQLBuilder",
    "ResolvedQuery",
    "resolve",
]
