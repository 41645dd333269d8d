"""
YAML catalog of tables and named queries, used by the command line.

    tables:
      patients:
        path: patients.csv            # relative to the catalog file
      encounters:
        columns: [PATIENT, DESCRIPTION, DATE]
        rows:
          - [p1, Checkup, "2016-03-01"]

    queries:
      recent_male_encounters:
        from: patients
        join: {table: encounters, left_key: patient, right_key: PATIENT, kind: left}
        select: [patient, {name: DESCRIPTION, alias: description}]
        filters:
          - [gender, "=", M]
          - [DATE, ">=", "2015-01-01"]
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import yaml

from tabquery.domain.query.descriptor import Column, QueryBuilder, QueryDescriptor
from tabquery.domain.schema.registry import SchemaRegistry
from tabquery.shared.exceptions import ConfigurationError, InvalidQuery


def load_catalog(path: Union[str, Path]) -> dict:
    """
    Read a catalog file.

    Relative table paths are later resolved against the catalog's directory,
    kept under the ``_base_dir`` key.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            catalog = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Catalog '{path}' is not valid YAML: {e}",
            details={"catalog": str(path)},
        )

    if not isinstance(catalog, dict):
        raise ConfigurationError(
            f"Catalog '{path}' must be a mapping with 'tables' and 'queries'",
            details={"catalog": str(path), "found": type(catalog).__name__},
        )

    catalog.setdefault("tables", {})
    catalog.setdefault("queries", {})
    catalog["_base_dir"] = str(path.resolve().parent)
    return catalog


def build_registry(catalog: dict, registry: Optional[SchemaRegistry] = None) -> SchemaRegistry:
    """Register every table of the catalog, reading CSV files where given."""
    registry = registry if registry is not None else SchemaRegistry()
    base_dir = Path(catalog.get("_base_dir", "."))

    for name, definition in catalog["tables"].items():
        definition = definition or {}
        if "path" in definition:
            csv_path = base_dir / definition["path"]
            try:
                frame = pd.read_csv(csv_path)
            except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                raise ConfigurationError(
                    f"Cannot read table '{name}' from '{csv_path}': {e}",
                    details={"table": name, "path": str(csv_path)},
                    suggestion="Table paths are relative to the catalog file",
                )
            columns = definition.get("columns")
            registry.register(name, columns, data=frame)
        else:
            registry.register(name, definition.get("columns", []), data=definition.get("rows") or None)

    return registry


def _column(item: Any) -> Column:
    if isinstance(item, str):
        return Column(item)
    if isinstance(item, dict) and "name" in item:
        return Column(item["name"], alias=item.get("alias"), table=item.get("table"))
    raise InvalidQuery(f"Invalid select entry in catalog: {item!r}")


def get_query(catalog: dict, query_name: str) -> QueryDescriptor:
    """Build the descriptor for a named catalog query."""
    queries: Dict[str, Any] = catalog["queries"]
    if query_name not in queries:
        raise InvalidQuery(
            f"Query '{query_name}' not found in catalog",
            details={"query": query_name, "available_queries": list(queries)},
        )

    definition = queries[query_name]
    builder = QueryBuilder()
    if "from" in definition:
        builder.from_(definition["from"])

    join = definition.get("join")
    if join:
        missing = [key for key in ("table", "left_key", "right_key") if key not in join]
        if missing:
            raise InvalidQuery(
                f"Join of query '{query_name}' is missing {', '.join(missing)}",
                details={"query": query_name, "join": join},
            )
        builder.join(join["table"], join["left_key"], join["right_key"], kind=join.get("kind", "inner"))

    builder.select(*[_column(item) for item in definition.get("select", [])])

    filters: List[Any] = definition.get("filters", [])
    for item in filters:
        if isinstance(item, dict) and "column" in item and "op" in item:
            builder.filter(_column(item["column"]), item["op"], item.get("value"))
        elif isinstance(item, (list, tuple)) and len(item) == 3:
            column, op, value = item
            builder.filter(column, op, value)
        else:
            raise InvalidQuery(
                f"Invalid filter in query '{query_name}': {item!r}",
                details={"query": query_name, "filter": item},
                suggestion="Write filters as [column, op, value] or {column: ..., op: ..., value: ...}",
            )

    return builder.build()
