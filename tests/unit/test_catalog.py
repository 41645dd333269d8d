"""
Tests for YAML catalogs.
"""

import pytest

from tabquery import Column, ConfigurationError, InvalidQuery, SchemaRegistry
from tabquery.catalog import build_registry, get_query, load_catalog


@pytest.fixture
def catalog(tmp_path):
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "people.csv").write_text("id,name,age\n1,Ann,34\n2,Bob,27\n")
    path = tmp_path / "catalog.yaml"
    path.write_text(
        """
tables:
  people:
    path: data/people.csv
    columns: [id, name]
  visits:
    columns: [person_id, kind]
queries:
  adults:
    from: people
    join: {table: visits, left_key: id, right_key: person_id}
    select: [name, {name: kind, alias: visit_kind, table: visits}]
    filters:
      - [id, ">", 1]
      - {column: {name: kind, table: visits}, op: like, value: "a%"}
"""
    )
    return load_catalog(path)


def test_load_catalog_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    catalog = load_catalog(path)
    assert catalog["tables"] == {}
    assert catalog["queries"] == {}
    assert catalog["_base_dir"] == str(tmp_path.resolve())


def test_build_registry(catalog):
    registry = build_registry(catalog)

    people = registry.lookup("people")
    assert people.columns == ("id", "name")
    assert people.data["name"].tolist() == ["Ann", "Bob"]
    assert registry.lookup("visits").data is None


def test_build_registry_into_existing(catalog):
    registry = SchemaRegistry()
    registry.register("other", ["x"])

    assert build_registry(catalog, registry) is registry
    assert registry.names() == ["other", "people", "visits"]


def test_get_query(catalog):
    descriptor = get_query(catalog, "adults")

    assert descriptor.source == "people"
    assert descriptor.join.kind == "inner"
    assert descriptor.columns == (Column("name"), Column("kind", alias="visit_kind", table="visits"))
    assert [(p.column.name, p.operator, p.value) for p in descriptor.filters] == [
        ("id", ">", 1),
        ("kind", "like", "a%"),
    ]


def test_get_unknown_query(catalog):
    with pytest.raises(InvalidQuery) as exc_info:
        get_query(catalog, "nope")

    assert exc_info.value.details["available_queries"] == ["adults"]


def test_load_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("tables: [unclosed\n")

    with pytest.raises(ConfigurationError) as exc_info:
        load_catalog(path)

    assert exc_info.value.details["catalog"] == str(path)


def test_load_catalog_not_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- patients\n- encounters\n")

    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_catalog(path)


def test_build_registry_missing_csv(tmp_path):
    """Test that an unreadable table path raises ConfigurationError naming the table and file."""
    catalog = {"tables": {"people": {"path": "missing.csv"}}, "queries": {}, "_base_dir": str(tmp_path)}

    with pytest.raises(ConfigurationError) as exc_info:
        build_registry(catalog)

    assert exc_info.value.details == {"table": "people", "path": str(tmp_path / "missing.csv")}
    assert isinstance(exc_info.value.__context__, FileNotFoundError)


@pytest.mark.parametrize("item", [["id", ">"], ["id", ">", 1, 2], "id > 1", {"column": "id", "value": 1}])
def test_get_query_invalid_filter(catalog, item):
    catalog["queries"]["bad"] = {"from": "people", "filters": [item]}

    with pytest.raises(InvalidQuery) as exc_info:
        get_query(catalog, "bad")

    assert exc_info.value.details == {"query": "bad", "filter": item}


def test_get_query_join_missing_keys(catalog):
    catalog["queries"]["bad"] = {"from": "people", "join": {"table": "visits"}}

    with pytest.raises(InvalidQuery, match="left_key, right_key"):
        get_query(catalog, "bad")
