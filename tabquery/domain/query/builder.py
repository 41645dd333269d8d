"""
SQL Builder using SQLGlot

Translates a QueryDescriptor into dialect-aware SQL text. Both backend
adapters go through this module; only the target dialect differs.

Translation:
    1. Resolve the base and joined tables against the registry
    2. Render the projection in insertion order, applying aliases
    3. Render ``<KIND> JOIN <joined> ON <base>.<left_key> = <joined>.<right_key>``
    4. Render the filters as a conjunction in insertion order
    5. Quote only identifiers that cannot appear bare (e.g. containing ".")

Literals are rendered inline by SQLGlot, which escapes string quotes, so no
caller-supplied value is ever concatenated into the query text.

Usage:
    resolved = resolve(descriptor, registry)
    sql = SQLBuilder(dialect="duckdb").build_query(resolved)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlglot import expressions as exp
from sqlglot.errors import SqlglotError

from tabquery.domain.query.descriptor import Column, Predicate, QueryDescriptor
from tabquery.domain.schema.registry import SchemaRegistry, Table
from tabquery.shared.exceptions import InvalidQuery, UnknownColumn

logger = logging.getLogger(__name__)


# =============================================================================
# RESOLUTION
# =============================================================================

@dataclass(frozen=True)
class ResolvedColumn:
    """A projected column bound to its owning table."""
    table: str
    name: str
    output_name: str


@dataclass(frozen=True)
class ResolvedPredicate:
    """A filter bound to its owning table."""
    table: str
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class ResolvedQuery:
    """A descriptor validated against the registry state at one point in time."""
    descriptor: QueryDescriptor
    base: Table
    joined: Optional[Table]
    columns: Tuple[ResolvedColumn, ...]
    filters: Tuple[ResolvedPredicate, ...]

    @property
    def output_names(self) -> List[str]:
        return [c.output_name for c in self.columns]


def _resolve_column(column: Column, base: Table, joined: Optional[Table]) -> Table:
    """Find the table owning ``column``: explicit qualifier, else base, else joined."""
    tables = [base] if joined is None else [base, joined]

    if column.table is not None:
        for table in tables:
            if table.name == column.table:
                if not table.has_column(column.name):
                    raise UnknownColumn(column.name, [table.name], list(table.columns))
                return table
        raise InvalidQuery(
            f"Column '{column.name}' is qualified with '{column.table}', "
            f"which is not part of the query",
            details={"column": column.name, "table": column.table, "tables": [t.name for t in tables]},
        )

    for table in tables:
        if table.has_column(column.name):
            return table

    available = [c for t in tables for c in t.columns]
    raise UnknownColumn(column.name, [t.name for t in tables], available)


def _check_literal(predicate: Predicate) -> None:
    value = predicate.value
    if value is None:
        if predicate.operator not in ("=", "!="):
            raise InvalidQuery(
                f"NULL can only be compared with '=' or '!=' (column '{predicate.column.name}')",
                details={"column": predicate.column.name, "operator": predicate.operator},
            )
        return

    if predicate.operator == "like" and not isinstance(value, str):
        raise InvalidQuery(
            f"LIKE pattern for column '{predicate.column.name}' must be a string",
            details={"column": predicate.column.name, "value": repr(value)},
        )

    if not isinstance(value, (str, bool, int, float, Decimal, date, datetime)):
        raise InvalidQuery(
            f"Unsupported literal for column '{predicate.column.name}': {value!r}",
            details={"column": predicate.column.name, "type": type(value).__name__},
        )


def resolve(descriptor: QueryDescriptor, registry: SchemaRegistry) -> ResolvedQuery:
    """
    Validate a descriptor against the current registry state.

    Raises:
        UnknownTable: If the base or joined table is not registered
        UnknownColumn: If a referenced column does not exist
        InvalidQuery: If output names collide or a literal is unusable
    """
    base = registry.lookup(descriptor.source)
    joined = registry.lookup(descriptor.join.table) if descriptor.join else None

    if joined is not None:
        if joined.name == base.name:
            raise InvalidQuery(
                f"Self-joins are not supported ('{base.name}')",
                details={"table": base.name},
            )
        if not base.has_column(descriptor.join.left_key):
            raise UnknownColumn(descriptor.join.left_key, [base.name], list(base.columns))
        if not joined.has_column(descriptor.join.right_key):
            raise UnknownColumn(descriptor.join.right_key, [joined.name], list(joined.columns))

    columns: List[ResolvedColumn] = []

    if descriptor.columns:
        seen: Dict[str, str] = {}
        for column in descriptor.columns:
            owner = _resolve_column(column, base, joined)
            output = column.output_name
            # Both engines compare identifiers case-insensitively
            key = output.lower()
            if key in seen:
                raise InvalidQuery(
                    f"Output column '{output}' collides with '{seen[key]}'",
                    details={"column": output},
                    suggestion=f"Give '{column.name}' an alias",
                )
            seen[key] = output
            columns.append(ResolvedColumn(owner.name, column.name, output))
    else:
        seen_names = set()
        for table in (base, joined):
            if table is None:
                continue
            for name in table.columns:
                output = name
                if name.lower() in seen_names:
                    output = f"{table.name}.{name}"
                seen_names.add(output.lower())
                columns.append(ResolvedColumn(table.name, name, output))

    filters: List[ResolvedPredicate] = []
    for predicate in descriptor.filters:
        owner = _resolve_column(predicate.column, base, joined)
        _check_literal(predicate)
        filters.append(ResolvedPredicate(owner.name, predicate.column.name, predicate.operator, predicate.value))

    return ResolvedQuery(
        descriptor=descriptor,
        base=base,
        joined=joined,
        columns=tuple(columns),
        filters=tuple(filters),
    )


# =============================================================================
# RENDERING
# =============================================================================

class SQLBuilderError(Exception):
    """Base exception for SQL builder errors."""
    pass


class SQLBuilder:
    """
    Dialect-aware SQL renderer for resolved queries.

    Args:
        dialect: SQLGlot dialect name ("duckdb", "tsql", ...)
        typed_literals: Render date/datetime literals as typed casts
            (``CAST('2015-01-01' AS DATE)``) instead of ISO text, and
            booleans as TRUE/FALSE instead of 1/0
    """

    # Comparison operator -> SQLGlot expression
    OPERATOR_MAP = {
        "=": exp.EQ,
        "!=": exp.NEQ,
        ">": exp.GT,
        ">=": exp.GTE,
        "<": exp.LT,
        "<=": exp.LTE,
        "like": exp.Like,
    }

    def __init__(self, dialect: str = "duckdb", typed_literals: bool = True):
        self.dialect = dialect
        self.typed_literals = typed_literals

    def build_query(self, resolved: ResolvedQuery) -> str:
        """Render the SELECT statement for a resolved query."""
        sql = self._render(self._select(resolved))
        logger.debug(f"Rendered {self.dialect} SQL: {sql}")
        return sql

    def build_create_table_as(self, table_name: str, resolved: ResolvedQuery, temporary: bool = True) -> str:
        """Render ``CREATE [TEMPORARY] TABLE <name> AS <select>``."""
        create = exp.Create(
            this=exp.Table(this=self._identifier(table_name)),
            kind="TABLE",
            expression=self._select(resolved),
            properties=exp.Properties(expressions=[exp.TemporaryProperty()]) if temporary else None,
        )
        return self._render(create)

    def _render(self, expression: exp.Expression) -> str:
        try:
            return expression.sql(dialect=self.dialect, pretty=False)
        except (ValueError, SqlglotError) as e:
            # unknown dialect names raise ValueError
            raise SQLBuilderError(f"Failed to render {self.dialect} SQL: {e}") from e

    def quote_identifier(self, name: str) -> str:
        """Render a single identifier in the target dialect."""
        return self._identifier(name).sql(dialect=self.dialect)

    def _select(self, resolved: ResolvedQuery) -> exp.Select:
        projections = [
            exp.alias_(self._column(c.table, c.name), self._identifier(c.output_name))
            for c in resolved.columns
        ]

        try:
            query = exp.Select().select(*projections).from_(exp.Table(this=self._identifier(resolved.base.name)))

            join = resolved.descriptor.join
            if join is not None:
                condition = exp.EQ(
                    this=self._column(resolved.base.name, join.left_key),
                    expression=self._column(join.table, join.right_key),
                )
                query = query.join(
                    exp.Table(this=self._identifier(join.table)),
                    on=condition,
                    join_type=join.kind,
                )

            conditions = [self._predicate(p) for p in resolved.filters]
            if conditions:
                query = query.where(exp.and_(*conditions))
        except Exception as e:
            logger.error(f"SQL building failed: {e}")
            raise SQLBuilderError(f"Failed to build SQL query: {e}") from e

        return query

    def _identifier(self, name: str) -> exp.Identifier:
        # Quoted only when the name is not a plain identifier (e.g. contains ".")
        return exp.to_identifier(name)

    def _column(self, table: str, name: str) -> exp.Column:
        return exp.Column(this=self._identifier(name), table=self._identifier(table))

    def _predicate(self, predicate: ResolvedPredicate) -> exp.Expression:
        column = self._column(predicate.table, predicate.column)

        if predicate.value is None:
            is_null = exp.Is(this=column, expression=exp.Null())
            return is_null if predicate.operator == "=" else exp.Not(this=is_null)

        op_class = self.OPERATOR_MAP[predicate.operator]
        return op_class(this=column, expression=self._literal(predicate.value))

    def _literal(self, value: Any) -> exp.Expression:
        if isinstance(value, bool):
            if self.typed_literals:
                return exp.Boolean(this=value)
            return exp.Literal.number(int(value))
        if isinstance(value, (int, float, Decimal)):
            return exp.Literal.number(value)
        if isinstance(value, datetime):
            text = value.isoformat(sep=" ")
            if self.typed_literals:
                return exp.cast(exp.Literal.string(text), exp.DataType.Type.TIMESTAMP)
            return exp.Literal.string(text)
        if isinstance(value, date):
            text = value.isoformat()
            if self.typed_literals:
                return exp.cast(exp.Literal.string(text), exp.DataType.Type.DATE)
            return exp.Literal.string(text)
        return exp.Literal.string(str(value))
