"""
Schema Registry

Tracks the named tables a session can query and their ordered column sets.

A table is registered once and is immutable afterwards; it only goes away
through an explicit deregister(). Descriptors are validated against the
registry when they run, so deregistering a table invalidates every
descriptor that references it from the next run onwards.

THREAD SAFETY:
--------------
The registry does no locking. Registering or deregistering from several
threads at once without caller-supplied synchronization is undefined.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from tabquery.core.config import settings
from tabquery.shared.exceptions import DuplicateTable, InvalidQuery, UnknownTable

logger = logging.getLogger(__name__)


TableData = Union[pd.DataFrame, Sequence[Mapping[str, Any]], Sequence[Sequence[Any]]]


@dataclass(frozen=True)
class Table:
    """
    A registered table.

    Attributes:
        name: Unique table name
        columns: Column names in registration order
        data: In-memory buffer backing the table on the embedded engine
    """
    name: str
    columns: Tuple[str, ...]
    data: Optional[pd.DataFrame] = field(default=None, compare=False, repr=False)

    def has_column(self, column: str) -> bool:
        return column in self.columns


def _to_frame(columns: Sequence[str], data: TableData) -> pd.DataFrame:
    """Normalize rows or a DataFrame to a DataFrame with exactly ``columns``."""
    if isinstance(data, pd.DataFrame):
        missing = [c for c in columns if c not in data.columns]
        if missing:
            raise InvalidQuery(
                f"Data is missing column(s): {', '.join(missing)}",
                details={"missing_columns": missing},
            )
        return data.loc[:, list(columns)].copy()

    rows = list(data)
    if rows and isinstance(rows[0], Mapping):
        return pd.DataFrame.from_records(rows, columns=list(columns))
    return pd.DataFrame(rows, columns=list(columns))


class SchemaRegistry:
    """
    Registry of named tables.

    Usage:
        registry = SchemaRegistry()
        registry.register("patients", ["patient", "birthdate", "gender"], data=rows)
        registry.lookup("patients").columns
        registry.deregister("patients")
    """

    def __init__(self, allow_re_register: Optional[bool] = None):
        """
        Args:
            allow_re_register: Treat re-registering a table with identical
                columns as a no-op instead of raising DuplicateTable
                (default: settings.allow_re_register)
        """
        if allow_re_register is None:
            allow_re_register = settings.allow_re_register
        self.allow_re_register = allow_re_register
        self._tables: Dict[str, Table] = {}

    def register(
        self,
        name: str,
        columns: Optional[Sequence[str]] = None,
        data: Optional[TableData] = None,
    ) -> Table:
        """
        Register a table.

        Args:
            name: Table name
            columns: Ordered column names (taken from ``data`` when it is a
                DataFrame and columns are omitted)
            data: Optional rows (DataFrame, list of dicts, or list of tuples)

        Returns:
            The registered (or already registered, identical) Table

        Raises:
            DuplicateTable: If the name is taken and this is not an identical
                re-registration with allow_re_register enabled
        """
        if columns is None:
            if not isinstance(data, pd.DataFrame):
                raise InvalidQuery(
                    f"Columns are required to register '{name}'",
                    details={"table": name},
                )
            columns = [str(c) for c in data.columns]

        columns = tuple(columns)
        if len(set(columns)) != len(columns):
            raise InvalidQuery(
                f"Table '{name}' has duplicate column names",
                details={"table": name, "columns": list(columns)},
            )

        existing = self._tables.get(name)
        if existing is not None:
            if self.allow_re_register and existing.columns == columns:
                logger.debug(f"Re-registration of '{name}' ignored (identical columns)")
                return existing
            raise DuplicateTable(name, list(existing.columns))

        frame = _to_frame(columns, data) if data is not None else None
        table = Table(name=name, columns=columns, data=frame)
        self._tables[name] = table
        logger.debug(f"Registered table '{name}' with columns {list(columns)}")
        return table

    def lookup(self, name: str) -> Table:
        """
        Get a registered table.

        Raises:
            UnknownTable: If the table is not registered
        """
        try:
            return self._tables[name]
        except KeyError:
            raise UnknownTable(name, self.names()) from None

    def deregister(self, name: str) -> None:
        """
        Remove a table.

        Raises:
            UnknownTable: If the table is not registered
        """
        if name not in self._tables:
            raise UnknownTable(name, self.names())
        del self._tables[name]
        logger.debug(f"Deregistered table '{name}'")

    def names(self) -> List[str]:
        """Registered table names, in registration order."""
        return list(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter(list(self._tables.values()))

    def __len__(self) -> int:
        return len(self._tables)
