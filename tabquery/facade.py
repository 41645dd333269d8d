"""
Query Facade for tabquery

Orchestrates the schema registry, descriptor validation and the backend
adapters. There is no process-wide connection: open() returns an explicit
Connection that is passed to every call and owns its adapter until closed.

Usage:
    registry = SchemaRegistry()
    registry.register("patients", ["patient", "birthdate", "gender"], data=patients_df)

    facade = QueryFacade(registry)
    with facade.open({"kind": "embedded"}) as conn:
        result = facade.run(conn, descriptor)
        facade.materialize_as_table(conn, descriptor, "male_patients")

CONCURRENCY:
------------
One query is in flight per connection and every call blocks until the
backend answers (or, on the remote backend, until the timeout). A
Connection must not be shared between threads.
"""

import logging
import uuid
from typing import Any, Dict, Optional, Union

from tabquery.adapters.base import BaseAdapter
from tabquery.adapters.factory import get_adapter
from tabquery.core.config import BackendConfig
from tabquery.domain.query.builder import resolve
from tabquery.domain.query.descriptor import QueryDescriptor
from tabquery.domain.schema.registry import SchemaRegistry
from tabquery.shared.exceptions import ConnectionClosed, DuplicateTable
from tabquery.shared.types import ResultSet

logger = logging.getLogger(__name__)


class Connection:
    """
    A session bound to exactly one backend adapter.

    Rebinding to another backend means closing this connection and opening
    a new one.
    """

    def __init__(self, facade: "QueryFacade", adapter: BaseAdapter, config: BackendConfig):
        self.id = f"{config.kind}-{uuid.uuid4().hex[:8]}"
        self.config = config
        self._facade = facade
        self._adapter = adapter
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def adapter(self) -> BaseAdapter:
        """
        The bound adapter.

        Raises:
            ConnectionClosed: If the connection was closed
        """
        if self._closed:
            raise ConnectionClosed(self.id)
        return self._adapter

    def run(self, descriptor: QueryDescriptor) -> ResultSet:
        return self._facade.run(self, descriptor)

    def materialize_as_table(self, descriptor: QueryDescriptor, table_name: str) -> ResultSet:
        return self._facade.materialize_as_table(self, descriptor, table_name)

    def execute_sql(self, sql: str) -> ResultSet:
        return self._facade.execute_sql(self, sql)

    def copy_to(self, table_name: str) -> None:
        self._facade.copy_to(self, table_name)

    def close(self) -> None:
        self._facade.close(self)

    def _mark_closed(self) -> None:
        self._closed = True

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Connection {self.id} {state}>"


class QueryFacade:
    """
    Entry point tying a SchemaRegistry to backend connections.

    Errors propagate as typed TabularQueryError subclasses; nothing is
    retried and there is no fallback between backends.
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None):
        self.registry = registry if registry is not None else SchemaRegistry()

    def open(self, config: Union[BackendConfig, Dict[str, Any]]) -> Connection:
        """
        Open a connection bound to the configured backend.

        Args:
            config: {"kind": "embedded"|"remote", "dsn": ..., "timeoutSeconds": ...}

        Raises:
            ConfigurationError: If the config is invalid
            ConnectionError: If the backend cannot be reached
        """
        config = BackendConfig.parse(config)
        adapter = get_adapter(config)
        connection = Connection(self, adapter, config)
        logger.info(f"Opened connection {connection.id} ({adapter.ENGINE})")
        return connection

    def run(self, connection: Connection, descriptor: QueryDescriptor) -> ResultSet:
        """
        Validate ``descriptor`` against the current registry and execute it.

        Raises:
            ConnectionClosed: If the connection was closed
            UnknownTable, UnknownColumn, InvalidQuery: Descriptor is not valid now
            ConnectionError, BackendExecutionError: Backend failures
        """
        adapter = connection.adapter
        resolve(descriptor, self.registry)
        return adapter.execute(descriptor, self.registry)

    def materialize_as_table(
        self,
        connection: Connection,
        descriptor: QueryDescriptor,
        table_name: str,
    ) -> ResultSet:
        """
        Execute ``descriptor``, persist the rows in the backend as
        ``table_name`` and register that table.

        Raises:
            DuplicateTable: If ``table_name`` is registered, unless
                allow_re_register is on and the columns are identical (no-op)
            ConnectionClosed, UnknownTable, BackendExecutionError: As for run()
        """
        adapter = connection.adapter
        resolved = resolve(descriptor, self.registry)

        if table_name in self.registry:
            existing = self.registry.lookup(table_name)
            if self.registry.allow_re_register and list(existing.columns) == resolved.output_names:
                logger.debug(f"Materialization of '{table_name}' skipped (identical columns)")
                return adapter.execute(descriptor, self.registry)
            raise DuplicateTable(table_name, list(existing.columns))

        result = adapter.materialize(descriptor, self.registry, table_name)
        table = self.registry.register(table_name, result.columns, data=result.to_dataframe())
        adapter.adopt(table)
        logger.info(f"Materialized '{table_name}' on {connection.id} ({result.row_count} rows)")
        return result

    def execute_sql(self, connection: Connection, sql: str) -> ResultSet:
        """Run raw query text on the connection's backend, registered tables available."""
        adapter = connection.adapter
        return adapter.execute_sql(sql, self.registry)

    def copy_to(self, connection: Connection, table_name: str) -> None:
        """Copy a registered table's in-memory rows into the connection's backend."""
        adapter = connection.adapter
        adapter.upload(self.registry.lookup(table_name))

    def close(self, connection: Connection) -> None:
        """Release the connection's backend resources. Closing twice is a no-op."""
        if connection.closed:
            return
        try:
            connection.adapter.disconnect()
        finally:
            connection._mark_closed()
            logger.info(f"Closed connection {connection.id}")
