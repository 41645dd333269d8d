"""
Result models shared by the adapters and the facade.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd


@dataclass
class ResultSet:
    """
    Standardized result from query execution.

    Attributes:
        columns: Output column names, in projection order
        rows: Result rows as dicts keyed by output column name
        row_count: Number of rows returned
        engine: Engine that produced the rows ("duckdb", "sqlite", ...)
        sql: Executed query text
        execution_time_ms: Query execution time in milliseconds
    """
    columns: List[str]
    rows: List[Dict[str, Any]]
    row_count: int = 0
    engine: str = ""
    sql: str = ""
    execution_time_ms: float = 0.0

    def __post_init__(self):
        self.row_count = len(self.rows)

    @classmethod
    def from_tuples(cls, columns: List[str], data: List[Tuple[Any, ...]], **kwargs) -> "ResultSet":
        """Build a result set from positional rows, keyed by ``columns``."""
        rows = [dict(zip(columns, values)) for values in data]
        return cls(columns=list(columns), rows=rows, **kwargs)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)

    def tuples(self) -> List[Tuple[Any, ...]]:
        """Rows as tuples in column order."""
        return [tuple(row[c] for c in self.columns) for row in self.rows]

    def multiset(self) -> Counter:
        """Rows as a multiset, for order-insensitive comparison."""
        return Counter(self.tuples())

    def to_records(self) -> List[Dict[str, Any]]:
        """Copy of the rows, safe to hand to other code."""
        return [dict(row) for row in self.rows]

    def to_dataframe(self) -> pd.DataFrame:
        """Result as a pandas DataFrame, columns in projection order."""
        return pd.DataFrame(self.tuples(), columns=self.columns)

    def to_csv(self, path: Optional[str] = None) -> Optional[str]:
        """Write the result as CSV to ``path``, or return the CSV text."""
        return self.to_dataframe().to_csv(path, index=False)

    def get_info(self) -> Dict[str, Any]:
        """Summary of the result without the rows."""
        return {
            "columns": self.columns,
            "row_count": self.row_count,
            "engine": self.engine,
            "sql": self.sql,
            "execution_time_ms": self.execution_time_ms,
        }
