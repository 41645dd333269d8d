"""
Schema Domain

Registry of named tables and their columns.
"""

from tabquery.domain.schema.registry import SchemaRegistry, Table

__all__ = ["SchemaRegistry", "Table"]
