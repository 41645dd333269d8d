"""
Backend Adapters for tabquery

Each adapter handles:
- Connection management
- Syncing registered tables into the backend
- Descriptor translation (dialect choice) and execution
- Result formatting

Supported backends:
- embedded: DuckDB, in-process, fed by pandas DataFrames
- remote: any SQLAlchemy DSN, T-SQL flavoured query text
"""

from tabquery.adapters.base import BaseAdapter
from tabquery.adapters.duckdb_adapter import DuckDBAdapter
from tabquery.adapters.remote_adapter import RemoteAdapter
from tabquery.adapters.factory import get_adapter, register_adapter, list_adapters

__all__ = [
    "BaseAdapter",
    "DuckDBAdapter",
    "RemoteAdapter",
    "get_adapter",
    "register_adapter",
    "list_adapters",
]
