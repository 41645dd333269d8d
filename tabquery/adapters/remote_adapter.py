"""
Remote Adapter for tabquery

Runs descriptors against an out-of-process relational database reached
through a SQLAlchemy DSN (``mssql+pyodbc://...``, ``sqlite:///file.db``,
...). Tables are expected to exist on the server; the registry only
describes them.

Query text is rendered in the T-SQL flavour: identifiers containing a
period are bracket-quoted (``[gold.mrr]``), strings single-quoted, dates
passed as ISO text for the server to coerce.

TIMEOUTS:
---------
Every statement runs on the adapter's single worker thread, and the caller
waits at most ``timeout_seconds`` for it. On timeout the wait is abandoned
and QueryTimeout is raised; the server may still be executing. The
worker thread owns the DBAPI connection for its whole life, which keeps
drivers that pin connections to their creating thread (pysqlite) happy.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, DBAPIError, SQLAlchemyError

from tabquery.adapters.base import BaseAdapter
from tabquery.domain.query.descriptor import QueryDescriptor
from tabquery.domain.schema.registry import SchemaRegistry, Table
from tabquery.shared.exceptions import BackendExecutionError, ConnectionError, QueryTimeout
from tabquery.shared.types import ResultSet

logger = logging.getLogger(__name__)


def _native(error: SQLAlchemyError) -> BaseException:
    """The DBAPI driver's own exception when there is one."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        return error.orig
    return error


class RemoteAdapter(BaseAdapter):
    """
    Adapter for remote relational databases via SQLAlchemy.

    Config options:
        dsn: SQLAlchemy database URL (required)
        timeoutSeconds: Seconds to wait for connect and each statement (default: 10)

    Example:
        adapter = RemoteAdapter(BackendConfig(kind="remote", dsn="mssql+pyodbc://analytics"))
        adapter.connect()
        result = adapter.execute(descriptor, registry)
    """

    ENGINE = "remote"
    DIALECT = "tsql"
    TYPED_LITERALS = False

    def __init__(self, config):
        """Initialize remote adapter."""
        super().__init__(config)

        try:
            self.url = make_url(config.dsn)
        except ArgumentError as e:
            raise ConnectionError(
                f"Invalid DSN: {e}",
                engine=self.ENGINE,
                original_error=e,
            )

        self.ENGINE = self.url.get_backend_name()
        self.timeout_seconds = config.timeout_seconds
        self._engine = None
        self._executor = None

    # =========================================================================
    # CONNECTION LIFECYCLE
    # =========================================================================

    def connect(self) -> None:
        """Open the engine and one live connection on the worker thread."""
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tabquery-{self.ENGINE}")

        def _open():
            engine = create_engine(self.url)
            try:
                return engine, engine.connect()
            except SQLAlchemyError:
                engine.dispose()
                raise

        def _release(future):
            # connect finished after the caller gave up on it
            if future.cancelled() or future.exception() is not None:
                return
            engine, connection = future.result()
            connection.close()
            engine.dispose()
            logger.debug(f"{self.ENGINE} late connection released")

        try:
            self._engine, self._connection = self._call(_open, require_connection=False, on_abandon=_release)
        except SQLAlchemyError as e:
            self._shutdown_executor()
            raise ConnectionError(
                f"Failed to connect to {self.ENGINE}: {_native(e)}",
                engine=self.ENGINE,
                original_error=_native(e),
                details={"database": self.url.database, "host": self.url.host},
            )
        except ConnectionError:
            self._shutdown_executor()
            raise

        self._connected = True
        logger.info(f"{self.ENGINE} connected: {self.url.render_as_string(hide_password=True)}")

    def disconnect(self) -> None:
        """Close the connection and dispose of the engine."""
        if self._executor is None:
            return

        def _close():
            if self._connection is not None:
                self._connection.close()
            if self._engine is not None:
                self._engine.dispose()

        try:
            self._call(_close, require_connection=False)
        except (SQLAlchemyError, ConnectionError) as e:
            logger.warning(f"Error closing {self.ENGINE} connection: {e}")
        finally:
            self._connection = None
            self._engine = None
            self._connected = False
            self._shutdown_executor()

    def health_check(self) -> bool:
        """Check remote connection health."""
        if not self._connected:
            return False

        try:
            self._fetch("SELECT 1")
            return True
        except (BackendExecutionError, ConnectionError):
            return False

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _call(
        self,
        fn: Callable[..., Any],
        *args,
        require_connection: bool = True,
        on_abandon: Optional[Callable[[Future], None]] = None,
    ) -> Any:
        """
        Run ``fn`` on the worker thread and wait for it.

        ``on_abandon`` is attached to the future when the wait times out and
        runs once ``fn`` eventually finishes.

        Raises:
            ConnectionError: If not connected
            QueryTimeout: If the wait times out
        """
        if require_connection:
            self._require_connection()

        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            if on_abandon is not None:
                future.add_done_callback(on_abandon)
            raise QueryTimeout(self.ENGINE, self.timeout_seconds) from None

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def _fetch(self, sql: str) -> Tuple[List[str], List[Tuple[Any, ...]]]:
        def _execute():
            try:
                # exec_driver_sql: the text is final, no bind-parameter parsing
                result = self._connection.exec_driver_sql(sql)
                if result.returns_rows:
                    columns = list(result.keys())
                    data = [tuple(row) for row in result.fetchall()]
                else:
                    columns, data = [], []
                self._connection.commit()
                return columns, data
            except SQLAlchemyError as e:
                self._connection.rollback()
                raise BackendExecutionError(self.ENGINE, _native(e), sql=sql)

        return self._call(_execute)

    def upload(self, table: Table) -> None:
        """Create ``table`` on the server and insert its in-memory rows."""
        if table.data is None:
            raise BackendExecutionError(
                self.ENGINE,
                ValueError(f"Table '{table.name}' has no in-memory rows to upload"),
            )
        self._write_frame(table.name, table.data)

    def materialize(self, descriptor: QueryDescriptor, registry: SchemaRegistry, table_name: str) -> ResultSet:
        """
        Execute the descriptor, then write its rows to a new server table.

        Rows are written back with pandas ``to_sql`` rather than a
        CREATE TABLE ... AS, which not every server dialect accepts.
        """
        result = self.execute(descriptor, registry)
        self._write_frame(table_name, result.to_dataframe())
        logger.info(f"{self.ENGINE} materialized '{table_name}' ({result.row_count} rows)")
        return result

    def _write_frame(self, table_name: str, frame) -> None:
        def _write():
            try:
                frame.to_sql(table_name, self._connection, index=False, if_exists="fail")
                self._connection.commit()
            except (SQLAlchemyError, ValueError) as e:
                self._connection.rollback()
                native = _native(e) if isinstance(e, SQLAlchemyError) else e
                raise BackendExecutionError(self.ENGINE, native)

        self._call(_write)
