"""
Tests for the schema registry.
"""

import pandas as pd
import pytest

from tabquery import DuplicateTable, InvalidQuery, SchemaRegistry, UnknownTable


class TestRegister:
    """Tests for SchemaRegistry.register()."""

    def test_lookup_returns_columns_in_order(self):
        """Test that a registered table keeps its column order."""
        registry = SchemaRegistry()
        registry.register("patients", ["patient", "birthdate", "gender"])

        table = registry.lookup("patients")
        assert table.name == "patients"
        assert table.columns == ("patient", "birthdate", "gender")
        assert table.data is None

    def test_register_with_tuple_rows(self):
        registry = SchemaRegistry()
        table = registry.register("t", ["a", "b"], data=[(1, "x"), (2, "y")])

        assert list(table.data.columns) == ["a", "b"]
        assert table.data["a"].tolist() == [1, 2]

    def test_register_with_dict_rows(self):
        registry = SchemaRegistry()
        table = registry.register("t", ["a", "b"], data=[{"b": "x", "a": 1}])

        assert list(table.data.columns) == ["a", "b"]
        assert table.data.iloc[0].tolist() == [1, "x"]

    def test_columns_taken_from_dataframe(self):
        """Test that columns default to the DataFrame's columns."""
        registry = SchemaRegistry()
        frame = pd.DataFrame({"x": [1], "y": [2]})

        table = registry.register("t", data=frame)
        assert table.columns == ("x", "y")

    def test_dataframe_is_projected_to_columns(self):
        registry = SchemaRegistry()
        frame = pd.DataFrame({"x": [1], "y": [2], "z": [3]})

        table = registry.register("t", ["z", "x"], data=frame)
        assert list(table.data.columns) == ["z", "x"]

    def test_dataframe_missing_column(self):
        registry = SchemaRegistry()
        with pytest.raises(InvalidQuery):
            registry.register("t", ["x", "missing"], data=pd.DataFrame({"x": [1]}))

    def test_columns_required_without_dataframe(self):
        registry = SchemaRegistry()
        with pytest.raises(InvalidQuery):
            registry.register("t", data=[(1, 2)])

    def test_duplicate_column_names_rejected(self):
        registry = SchemaRegistry()
        with pytest.raises(InvalidQuery):
            registry.register("t", ["a", "a"])

    def test_duplicate_table_rejected(self):
        """Test that registering a name twice raises DuplicateTable."""
        registry = SchemaRegistry(allow_re_register=False)
        registry.register("patients", ["patient"])

        with pytest.raises(DuplicateTable) as exc_info:
            registry.register("patients", ["patient"])

        assert exc_info.value.table == "patients"
        assert exc_info.value.details["existing_columns"] == ["patient"]

    def test_identical_re_register_is_noop_when_allowed(self):
        registry = SchemaRegistry(allow_re_register=True)
        first = registry.register("patients", ["patient", "gender"])
        second = registry.register("patients", ["patient", "gender"])

        assert second is first
        assert len(registry) == 1

    def test_re_register_with_other_columns_rejected_when_allowed(self):
        registry = SchemaRegistry(allow_re_register=True)
        registry.register("patients", ["patient", "gender"])

        with pytest.raises(DuplicateTable):
            registry.register("patients", ["gender", "patient"])

    def test_default_comes_from_settings(self, monkeypatch):
        from tabquery.core import config

        monkeypatch.setattr(config.settings, "allow_re_register", True)
        assert SchemaRegistry().allow_re_register is True


class TestLookupAndDeregister:
    """Tests for lookup(), deregister() and iteration."""

    def test_unknown_table(self):
        registry = SchemaRegistry()
        registry.register("patients", ["patient"])

        with pytest.raises(UnknownTable) as exc_info:
            registry.lookup("encounters")

        assert exc_info.value.table == "encounters"
        assert exc_info.value.details["available_tables"] == ["patients"]

    def test_unknown_table_suggests_similar_name(self):
        registry = SchemaRegistry()
        registry.register("patients_2020", ["patient"])

        with pytest.raises(UnknownTable) as exc_info:
            registry.lookup("patients")

        assert "patients_2020" in exc_info.value.suggestion

    def test_deregister(self):
        registry = SchemaRegistry()
        registry.register("patients", ["patient"])
        registry.deregister("patients")

        assert "patients" not in registry
        with pytest.raises(UnknownTable):
            registry.lookup("patients")

    def test_deregister_unknown(self):
        with pytest.raises(UnknownTable):
            SchemaRegistry().deregister("nope")

    def test_name_can_be_reused_after_deregister(self):
        registry = SchemaRegistry(allow_re_register=False)
        registry.register("t", ["a"])
        registry.deregister("t")

        assert registry.register("t", ["b"]).columns == ("b",)

    def test_names_in_registration_order(self):
        registry = SchemaRegistry()
        registry.register("b", ["x"])
        registry.register("a", ["x"])

        assert registry.names() == ["b", "a"]
        assert [t.name for t in registry] == ["b", "a"]
