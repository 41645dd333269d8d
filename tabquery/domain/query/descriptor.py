"""
Query Descriptor

Immutable description of a filtered join-projection over one or two
registered tables, and the fluent builder that produces it.

Usage:
    descriptor = (
        QueryBuilder()
        .from_("patients")
        .join("encounters", left_key="patient", right_key="PATIENT", kind="left")
        .select("patient", ("DESCRIPTION", "description"))
        .filter(col("gender") == "M")
        .filter("DATE", ">=", "2015-01-01")
        .build()
    )

Column order in ``select`` is the result column order. Filters are AND-ed;
their order has no effect on the result. An empty ``select`` projects every
column of the base table followed by every column of the joined table.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from tabquery.shared.exceptions import IncompleteQuery, InvalidQuery


# =============================================================================
# OPERATORS
# =============================================================================

OPERATORS = ("=", "like", ">=", "<=", ">", "<", "!=")
JOIN_KINDS = ("inner", "left")

# Accepted spellings -> canonical operator
_OPERATOR_ALIASES = {
    "==": "=",
    "eq": "=",
    "<>": "!=",
    "ne": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}


def normalize_operator(operator: str) -> str:
    """
    Map an operator spelling to its canonical form.

    Raises:
        InvalidQuery: If the operator is not supported
    """
    op = str(operator).strip().lower()
    op = _OPERATOR_ALIASES.get(op, op)
    if op not in OPERATORS:
        raise InvalidQuery(
            f"Unsupported filter operator: {operator!r}",
            details={"operator": operator, "supported": list(OPERATORS)},
        )
    return op


# =============================================================================
# VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class Column:
    """
    A column reference, optionally qualified with its table and aliased.

    Without ``table`` the column is looked up in the base table first, then
    in the joined table.
    """
    name: str
    alias: Optional[str] = None
    table: Optional[str] = None

    @property
    def output_name(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class Join:
    """``<kind> JOIN <table> ON <base>.<left_key> = <table>.<right_key>``"""
    table: str
    left_key: str
    right_key: str
    kind: str = "inner"


@dataclass(frozen=True)
class Predicate:
    """``<column> <operator> <value>``"""
    column: Column
    operator: str
    value: Any


@dataclass(frozen=True)
class QueryDescriptor:
    """
    Immutable query description.

    Attributes:
        source: Base table name
        join: Optional join against a second table
        columns: Projected columns, in result order (empty = all columns)
        filters: Predicates, implicitly AND-ed
    """
    source: str
    join: Optional[Join] = None
    columns: Tuple[Column, ...] = ()
    filters: Tuple[Predicate, ...] = ()

    def tables(self) -> List[str]:
        """Tables referenced by the query, base table first."""
        if self.join is None:
            return [self.source]
        return [self.source, self.join.table]


# =============================================================================
# IN-LANGUAGE EXPRESSIONS
# =============================================================================

class ColumnExpression:
    """
    Comparison operators on a column that produce predicates.

        col("gender") == "M"
        col("DATE") >= "2015-01-01"
        col("DESCRIPTION").like("%visit%")
    """

    def __init__(self, name: str, table: Optional[str] = None):
        self.name = name
        self.table = table

    def _predicate(self, operator: str, value: Any) -> Predicate:
        return Predicate(Column(self.name, table=self.table), operator, value)

    def __eq__(self, value: Any) -> Predicate:  # type: ignore[override]
        return self._predicate("=", value)

    def __ne__(self, value: Any) -> Predicate:  # type: ignore[override]
        return self._predicate("!=", value)

    def __gt__(self, value: Any) -> Predicate:
        return self._predicate(">", value)

    def __ge__(self, value: Any) -> Predicate:
        return self._predicate(">=", value)

    def __lt__(self, value: Any) -> Predicate:
        return self._predicate("<", value)

    def __le__(self, value: Any) -> Predicate:
        return self._predicate("<=", value)

    __hash__ = None  # type: ignore[assignment]

    def like(self, pattern: str) -> Predicate:
        """LIKE predicate; the pattern is used exactly as given."""
        return self._predicate("like", pattern)

    def as_(self, alias: str) -> Column:
        """Projected column with an output alias."""
        return Column(self.name, alias=alias, table=self.table)

    def __repr__(self) -> str:
        if self.table:
            return f"col({self.name!r}, table={self.table!r})"
        return f"col({self.name!r})"


def col(name: str, table: Optional[str] = None) -> ColumnExpression:
    """Reference a column inside a filter or select expression."""
    return ColumnExpression(name, table)


ColumnLike = Union[str, Column, ColumnExpression, Tuple[str, str]]


def _to_column(value: ColumnLike) -> Column:
    if isinstance(value, Column):
        return value
    if isinstance(value, ColumnExpression):
        return Column(value.name, table=value.table)
    if isinstance(value, str):
        return Column(value)
    if isinstance(value, tuple) and len(value) == 2:
        name, alias = value
        return Column(name, alias=alias)
    raise InvalidQuery(
        f"Cannot use {value!r} as a column",
        details={"column": repr(value)},
    )


# =============================================================================
# BUILDER
# =============================================================================

class QueryBuilder:
    """
    Fluent builder accumulating from/join/select/filter calls.

    The builder itself is mutable; build() returns an immutable
    QueryDescriptor and can be called repeatedly.
    """

    def __init__(self):
        self._source: Optional[str] = None
        self._join: Optional[Join] = None
        self._columns: List[Column] = []
        self._filters: List[Predicate] = []

    def from_(self, table: str) -> "QueryBuilder":
        self._source = table
        return self

    def join(self, table: str, left_key: str, right_key: str, kind: str = "inner") -> "QueryBuilder":
        """
        Join the base table with ``table`` on base.left_key = table.right_key.

        Raises:
            InvalidQuery: On an unknown join kind or a second join
        """
        kind = str(kind).strip().lower()
        if kind not in JOIN_KINDS:
            raise InvalidQuery(
                f"Unsupported join kind: {kind!r}",
                details={"kind": kind, "supported": list(JOIN_KINDS)},
            )
        if self._join is not None:
            raise InvalidQuery(
                f"Query already joins '{self._join.table}'; only one join is supported",
                details={"table": table},
            )
        self._join = Join(table=table, left_key=left_key, right_key=right_key, kind=kind)
        return self

    def left_join(self, table: str, left_key: str, right_key: str) -> "QueryBuilder":
        return self.join(table, left_key, right_key, kind="left")

    def select(self, *columns: ColumnLike) -> "QueryBuilder":
        """Append projected columns: names, (name, alias) tuples, Column or col()."""
        self._columns.extend(_to_column(c) for c in columns)
        return self

    def filter(
        self,
        column: Union[ColumnLike, Predicate],
        operator: Optional[str] = None,
        value: Any = None,
    ) -> "QueryBuilder":
        """
        Append a predicate, either ``filter(col("x") >= 1)`` or
        ``filter("x", ">=", 1)``.
        """
        if isinstance(column, Predicate):
            predicate = column
        else:
            if operator is None:
                raise InvalidQuery(
                    f"Filter on {column!r} needs an operator",
                    details={"column": repr(column)},
                )
            predicate = Predicate(_to_column(column), operator, value)

        predicate = Predicate(predicate.column, normalize_operator(predicate.operator), predicate.value)
        self._filters.append(predicate)
        return self

    where = filter

    def build(self) -> QueryDescriptor:
        """
        Produce the immutable descriptor.

        Raises:
            IncompleteQuery: If from_() was never called
        """
        if not self._source:
            raise IncompleteQuery(
                "Query has no source table; call from_() before build()",
                suggestion="Start the query with QueryBuilder().from_('<table>')",
            )
        return QueryDescriptor(
            source=self._source,
            join=self._join,
            columns=tuple(self._columns),
            filters=tuple(self._filters),
        )


def select(*columns: ColumnLike) -> QueryBuilder:
    """Shorthand for ``QueryBuilder().select(...)``."""
    return QueryBuilder().select(*columns)


def from_(table: str) -> QueryBuilder:
    """Shorthand for ``QueryBuilder().from_(table)``."""
    return QueryBuilder().from_(table)
