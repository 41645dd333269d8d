"""
DuckDB Adapter for tabquery

DuckDB is the embedded analytical engine: it runs in-process, needs no
server, and queries pandas DataFrames in place.

Every registered table is exposed to DuckDB as a view over its in-memory
DataFrame. Views are synced with the registry before each execution: new
tables are registered, deregistered or replaced ones dropped. Temporary
tables made by materialize() follow the same rule once adopted.
Execution is synchronous and has no timeout.

Connection modes:
- In-memory (default): Fast, ephemeral
- File-based: Persistent, shareable
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import duckdb
import pandas as pd

from tabquery.adapters.base import BaseAdapter
from tabquery.domain.query.builder import resolve
from tabquery.domain.query.descriptor import QueryDescriptor
from tabquery.domain.schema.registry import SchemaRegistry, Table
from tabquery.shared.exceptions import BackendExecutionError, ConnectionError
from tabquery.shared.types import ResultSet

logger = logging.getLogger(__name__)


def _empty_frame(table: Table) -> pd.DataFrame:
    return pd.DataFrame({name: pd.Series([], dtype="string") for name in table.columns})


class DuckDBAdapter(BaseAdapter):
    """
    Adapter for the DuckDB embedded database.

    Config options:
        database: Path to database file, or ":memory:" (default)

    Example:
        adapter = DuckDBAdapter(BackendConfig(kind="embedded"))
        adapter.connect()
        result = adapter.execute(descriptor, registry)
    """

    ENGINE = "duckdb"
    DIALECT = "duckdb"
    TYPED_LITERALS = True

    def __init__(self, config):
        """Initialize DuckDB adapter."""
        super().__init__(config)
        self.database = config.database

        # view name -> Table it was registered from
        self._views: Dict[str, Table] = {}
        # table created in DuckDB by materialize() -> registered Table it backs
        # (None until adopt() is called)
        self._derived: Dict[str, Optional[Table]] = {}

    def connect(self) -> None:
        """Connect to DuckDB database."""
        try:
            self._connection = duckdb.connect(database=self.database)
            self._connected = True
            logger.info(f"DuckDB connected: {self.database}")
        except duckdb.Error as e:
            raise ConnectionError(
                f"Failed to connect to DuckDB: {e}",
                engine=self.ENGINE,
                original_error=e,
            )

    def disconnect(self) -> None:
        """Close DuckDB connection."""
        if self._connection:
            try:
                self._connection.close()
            except duckdb.Error as e:
                logger.warning(f"Error closing DuckDB connection: {e}")
            finally:
                self._connection = None
                self._connected = False
                self._views.clear()
                self._derived.clear()

    def health_check(self) -> bool:
        """Check DuckDB connection health."""
        if not self._connected or not self._connection:
            return False

        try:
            self._connection.execute("SELECT 1").fetchone()
            return True
        except duckdb.Error:
            return False

    def prepare(self, registry: SchemaRegistry) -> None:
        """Sync DuckDB views with the registry."""
        current = {table.name: table for table in registry}

        for name in list(self._views):
            if current.get(name) is not self._views[name]:
                self._connection.unregister(name)
                del self._views[name]
                logger.debug(f"DuckDB view dropped: {name}")

        for name, owner in list(self._derived.items()):
            if owner is None or current.get(name) is not owner:
                self._run_statement(f"DROP TABLE IF EXISTS {self.sql_builder.quote_identifier(name)}")
                del self._derived[name]
                logger.debug(f"DuckDB derived table dropped: {name}")

        for name, table in current.items():
            if name in self._views or name in self._derived:
                continue
            self.upload(table)

    def adopt(self, table: Table) -> None:
        """Bind a derived table to its registry entry; replacing that entry drops it."""
        if table.name in self._derived:
            self._derived[table.name] = table

    def upload(self, table: Table) -> None:
        """Register a table's DataFrame (empty if it has none) as a view."""
        self._require_connection()
        frame = table.data if table.data is not None else _empty_frame(table)
        try:
            self._connection.register(table.name, frame)
        except duckdb.Error as e:
            raise BackendExecutionError(self.ENGINE, e)
        self._views[table.name] = table
        logger.debug(f"DuckDB view registered: {table.name} ({len(frame)} rows)")

    def _fetch(self, sql: str) -> Tuple[List[str], List[Tuple[Any, ...]]]:
        try:
            cursor = self._connection.execute(sql)
            if cursor.description is None:
                return [], []
            columns = [desc[0] for desc in cursor.description]
            return columns, cursor.fetchall()
        except duckdb.Error as e:
            raise BackendExecutionError(self.ENGINE, e, sql=sql)

    def _run_statement(self, sql: str) -> None:
        try:
            self._connection.execute(sql)
        except duckdb.Error as e:
            raise BackendExecutionError(self.ENGINE, e, sql=sql)

    def materialize(self, descriptor: QueryDescriptor, registry: SchemaRegistry, table_name: str) -> ResultSet:
        """
        Persist the descriptor's result as a temporary DuckDB table.

        The table is created with CREATE TEMPORARY TABLE ... AS SELECT, so
        column types are the ones DuckDB computed for the query.
        """
        self._require_connection()
        resolved = resolve(descriptor, registry)
        self.prepare(registry)

        create_sql = self.sql_builder.build_create_table_as(table_name, resolved, temporary=True)
        self._run_statement(create_sql)
        self._derived[table_name] = None
        logger.info(f"DuckDB materialized '{table_name}'")

        result = self._run(
            f"SELECT * FROM {self.sql_builder.quote_identifier(table_name)}",
            columns=resolved.output_names,
        )
        result.sql = create_sql
        return result
