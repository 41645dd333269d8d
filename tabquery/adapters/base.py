"""
Base Adapter Interface for tabquery

Every backend adapter implements this interface so that a QueryDescriptor
produces row-equivalent results whichever engine runs it.

DESIGN PRINCIPLES:
-----------------
1. One adapter instance owns exactly one live backend connection
2. Descriptors are re-resolved against the registry on every execution
3. Translation is shared (SQLBuilder); adapters only pick the dialect
4. Results returned as ResultSet (rows as dicts, engine-agnostic)
5. Native errors wrapped in BackendExecutionError with their text intact
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from tabquery.core.config import BackendConfig
from tabquery.domain.query.builder import ResolvedQuery, SQLBuilder, SQLBuilderError, resolve
from tabquery.domain.query.descriptor import QueryDescriptor
from tabquery.domain.schema.registry import SchemaRegistry, Table
from tabquery.shared.exceptions import BackendExecutionError, ConnectionError
from tabquery.shared.types import ResultSet

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """
    Abstract base class for backend adapters.

    Each adapter must implement:
    - connect(): Establish the backend connection
    - disconnect(): Close it
    - health_check(): Verify the connection is alive
    - _fetch(): Run one statement and return (column names, row tuples)
    - materialize(): Execute a descriptor and persist its rows as a table
    - upload(): Make a registered table's in-memory rows available

    Usage:
        adapter = DuckDBAdapter(BackendConfig(kind="embedded"))
        adapter.connect()

        result = adapter.execute(descriptor, registry)

        adapter.disconnect()
    """

    # Engine identifier (e.g., "duckdb", "sqlite", "mssql")
    ENGINE: str = "base"

    # SQLGlot dialect used to render descriptors
    DIALECT: str = "duckdb"

    # Render dates as typed casts and booleans as TRUE/FALSE
    TYPED_LITERALS: bool = True

    def __init__(self, config: BackendConfig):
        """
        Initialize adapter with connection configuration.

        Args:
            config: Validated backend configuration
        """
        self.config = config
        self._connection = None
        self._connected = False
        self._last_used: Optional[datetime] = None
        self.sql_builder = SQLBuilder(dialect=self.DIALECT, typed_literals=self.TYPED_LITERALS)

    @abstractmethod
    def connect(self) -> None:
        """
        Establish connection to the backend.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """
        Close the backend connection.

        Should be safe to call even if not connected.
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if connection is alive and usable.

        Returns:
            True if connection is healthy, False otherwise
        """
        pass

    @abstractmethod
    def _fetch(self, sql: str) -> Tuple[List[str], List[Tuple[Any, ...]]]:
        """
        Run one statement.

        Returns:
            (column names, rows); both empty for statements without results

        Raises:
            BackendExecutionError: If the backend rejects the statement
        """
        pass

    @abstractmethod
    def materialize(self, descriptor: QueryDescriptor, registry: SchemaRegistry, table_name: str) -> ResultSet:
        """
        Execute a descriptor and persist its rows in the backend as ``table_name``.

        Returns:
            The rows that were persisted
        """
        pass

    @abstractmethod
    def upload(self, table: Table) -> None:
        """Make a registered table's in-memory rows queryable on the backend."""
        pass

    def prepare(self, registry: SchemaRegistry) -> None:
        """Hook run before each execution; default does nothing."""
        pass

    def adopt(self, table: Table) -> None:
        """
        Hook run once a materialized table has been registered.

        ``table`` is the registry entry backed by the rows materialize()
        persisted; default does nothing.
        """
        pass

    def execute(self, descriptor: QueryDescriptor, registry: SchemaRegistry) -> ResultSet:
        """
        Resolve, translate and run a descriptor.

        Tables are looked up again here, so a table deregistered after the
        descriptor was built fails with UnknownTable.

        Raises:
            UnknownTable, UnknownColumn, InvalidQuery: Descriptor no longer valid
            ConnectionError: If the adapter is not connected
            BackendExecutionError: If the backend fails the query
        """
        self._require_connection()
        resolved = resolve(descriptor, registry)
        self.prepare(registry)

        sql = self.render(resolved)
        return self._run(sql, columns=resolved.output_names)

    def execute_sql(self, sql: str, registry: Optional[SchemaRegistry] = None) -> ResultSet:
        """
        Run raw query text as-is.

        Args:
            sql: Query text in the backend's own dialect
            registry: When given, registered tables are made available first
        """
        self._require_connection()
        if registry is not None:
            self.prepare(registry)
        return self._run(sql)

    def render(self, resolved: ResolvedQuery) -> str:
        """Translate a resolved query into this backend's SQL."""
        try:
            return self.sql_builder.build_query(resolved)
        except SQLBuilderError as e:
            raise BackendExecutionError(self.ENGINE, e.__cause__ or e) from e

    def _run(self, sql: str, columns: Optional[List[str]] = None) -> ResultSet:
        self._update_last_used()
        start_time = time.perf_counter()

        fetched_columns, data = self._fetch(sql)

        execution_time = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{self.ENGINE} returned {len(data)} rows in {execution_time:.1f}ms")

        return ResultSet.from_tuples(
            columns if columns is not None else fetched_columns,
            data,
            engine=self.ENGINE,
            sql=sql,
            execution_time_ms=execution_time,
        )

    def _require_connection(self) -> None:
        if not self._connected:
            raise ConnectionError(
                f"Not connected to {self.ENGINE}",
                engine=self.ENGINE,
            )

    def is_connected(self) -> bool:
        """Check if adapter has an active connection."""
        return self._connected

    def get_engine_info(self) -> Dict[str, Any]:
        """Get information about this adapter/engine."""
        return {
            "engine": self.ENGINE,
            "kind": self.config.kind,
            "dialect": self.DIALECT,
            "connected": self._connected,
            "last_used": self._last_used.isoformat() if self._last_used else None,
        }

    def _update_last_used(self):
        """Update last used timestamp."""
        self._last_used = datetime.now(timezone.utc)

    def __enter__(self):
        """Context manager support."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager cleanup."""
        self.disconnect()
        return False
