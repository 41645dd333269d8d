"""
Tests for the query facade: connections, materialization and backend parity.
"""

import pytest

from tabquery import (
    ConfigurationError,
    ConnectionClosed,
    DuplicateTable,
    QueryBuilder,
    QueryFacade,
    SchemaRegistry,
    UnknownTable,
)


class TestConnections:
    """Tests for opening and closing connections."""

    def test_open_embedded(self, facade):
        conn = facade.open({"kind": "embedded"})

        assert conn.id.startswith("embedded-")
        assert conn.closed is False
        assert conn.adapter.ENGINE == "duckdb"
        conn.close()

    def test_open_invalid_config(self, facade):
        with pytest.raises(ConfigurationError):
            facade.open({"kind": "remote"})

    def test_connections_are_independent(self, facade):
        first = facade.open({"kind": "embedded"})
        second = facade.open({"kind": "embedded"})

        assert first.id != second.id
        first.close()
        assert second.run(QueryBuilder().from_("patients").build()).row_count == 4
        second.close()

    def test_run_after_close(self, facade, recent_male_encounters):
        """Test that every operation on a closed connection raises ConnectionClosed."""
        conn = facade.open({"kind": "embedded"})
        conn.close()

        with pytest.raises(ConnectionClosed):
            facade.run(conn, recent_male_encounters)
        with pytest.raises(ConnectionClosed):
            conn.materialize_as_table(recent_male_encounters, "recent")
        with pytest.raises(ConnectionClosed):
            conn.execute_sql("SELECT 1")
        with pytest.raises(ConnectionClosed):
            conn.copy_to("patients")

    def test_close_is_idempotent(self, facade):
        conn = facade.open({"kind": "remote", "dsn": "sqlite://"})
        conn.close()
        conn.close()

        assert conn.closed is True
        assert "closed" in repr(conn)

    def test_context_manager_closes(self, facade):
        with facade.open({"kind": "embedded"}) as conn:
            assert not conn.closed

        assert conn.closed

    def test_default_registry(self):
        facade = QueryFacade()
        assert isinstance(facade.registry, SchemaRegistry)
        assert len(facade.registry) == 0


class TestMaterialize:
    """Tests for materialize_as_table()."""

    @pytest.fixture(params=["embedded", "remote"])
    def conn(self, request, facade):
        if request.param == "embedded":
            conn = facade.open({"kind": "embedded"})
        else:
            conn = facade.open({"kind": "remote", "dsn": "sqlite://"})
            conn.copy_to("patients")
            conn.copy_to("encounters")
        yield conn
        conn.close()

    def test_round_trip(self, conn, facade, recent_male_encounters):
        """Test that a materialized table returns the rows it was built from."""
        materialized = conn.materialize_as_table(recent_male_encounters, "recent")

        assert facade.registry.lookup("recent").columns == ("patient", "description")

        result = conn.run(QueryBuilder().from_("recent").build())
        assert result.columns == ["patient", "description"]
        assert result.multiset() == materialized.multiset() == conn.run(recent_male_encounters).multiset()

    def test_materialized_table_can_be_filtered(self, conn, recent_male_encounters):
        conn.materialize_as_table(recent_male_encounters, "recent")
        descriptor = QueryBuilder().from_("recent").select("description").filter("patient", "=", "p3").build()

        assert conn.run(descriptor).tuples() == [("Follow-up",)]

    def test_name_taken(self, conn, recent_male_encounters):
        with pytest.raises(DuplicateTable):
            conn.materialize_as_table(recent_male_encounters, "patients")

    def test_materialize_twice_without_re_register(self, conn, recent_male_encounters):
        conn.materialize_as_table(recent_male_encounters, "recent")

        with pytest.raises(DuplicateTable):
            conn.materialize_as_table(recent_male_encounters, "recent")

    def test_materialize_twice_with_re_register(self, conn, facade, recent_male_encounters):
        facade.registry.allow_re_register = True
        first = conn.materialize_as_table(recent_male_encounters, "recent")
        second = conn.materialize_as_table(recent_male_encounters, "recent")

        assert second.multiset() == first.multiset()
        assert facade.registry.names().count("recent") == 1

    def test_unknown_source(self, conn):
        with pytest.raises(UnknownTable):
            conn.materialize_as_table(QueryBuilder().from_("nope").build(), "out")

    def test_deregistered_materialized_table(self, conn, facade, recent_male_encounters):
        conn.materialize_as_table(recent_male_encounters, "recent")
        facade.registry.deregister("recent")

        with pytest.raises(UnknownTable):
            conn.run(QueryBuilder().from_("recent").build())

    def test_replaced_materialized_table_serves_new_rows(self, embedded, facade, recent_male_encounters):
        """Test that a table re-registered under a materialized name is what runs see."""
        embedded.materialize_as_table(recent_male_encounters, "recent")
        facade.registry.deregister("recent")
        facade.registry.register("recent", ["patient", "description"], data=[("zz", "new")])

        assert embedded.run(QueryBuilder().from_("recent").build()).tuples() == [("zz", "new")]

    def test_replaced_materialized_table_with_other_columns(self, embedded, facade, recent_male_encounters):
        embedded.materialize_as_table(recent_male_encounters, "recent")
        facade.registry.deregister("recent")
        facade.registry.register("recent", ["x"], data=[(1,), (2,)])

        result = embedded.run(QueryBuilder().from_("recent").filter("x", ">", 1).build())
        assert result.columns == ["x"]
        assert result.tuples() == [(2,)]

    def test_materialized_table_kept_across_runs(self, embedded, facade, recent_male_encounters):
        embedded.materialize_as_table(recent_male_encounters, "recent")
        adapter = embedded.adapter

        embedded.run(QueryBuilder().from_("patients").build())
        assert adapter._derived["recent"] is facade.registry.lookup("recent")
        assert "recent" not in adapter._views

    def test_visible_on_another_embedded_connection(self, conn, facade, recent_male_encounters):
        conn.materialize_as_table(recent_male_encounters, "recent")

        with facade.open({"kind": "embedded"}) as other:
            assert other.run(QueryBuilder().from_("recent").build()).row_count == 2


class TestBackendParity:
    """The same descriptor yields the same rows on both backends."""

    DESCRIPTORS = {
        "recent_male_encounters": (
            QueryBuilder()
            .from_("patients")
            .join("encounters", left_key="patient", right_key="PATIENT", kind="left")
            .select("patient", ("DESCRIPTION", "description"))
            .filter("gender", "=", "M")
            .filter("DATE", ">=", "2015-01-01")
        ),
        "all_columns_inner": QueryBuilder().from_("patients").join("encounters", "patient", "PATIENT"),
        "left_join_nulls": (
            QueryBuilder()
            .from_("patients")
            .left_join("encounters", "patient", "PATIENT")
            .select("patient", "DESCRIPTION")
            .filter("DESCRIPTION", "=", None)
        ),
        "like_and_not_equal": (
            QueryBuilder()
            .from_("encounters")
            .select("PATIENT", "DESCRIPTION")
            .filter("DESCRIPTION", "like", "%-%")
            .filter("PATIENT", "!=", "p1")
        ),
        "range": QueryBuilder().from_("patients").filter("birthdate", ">", "1979-12-31").filter("birthdate", "<=", "1990-03-20"),
    }

    @pytest.mark.parametrize("name", sorted(DESCRIPTORS))
    def test_same_rows(self, name, embedded, seeded_remote):
        descriptor = self.DESCRIPTORS[name].build()

        embedded_result = embedded.run(descriptor)
        remote_result = seeded_remote.run(descriptor)

        assert embedded_result.columns == remote_result.columns
        assert embedded_result.multiset() == remote_result.multiset()

    def test_sequential_connections(self, registry):
        """Test one facade serving an embedded then a remote connection."""
        facade = QueryFacade(registry)
        descriptor = self.DESCRIPTORS["recent_male_encounters"].build()

        with facade.open({"kind": "embedded"}) as embedded:
            expected = embedded.run(descriptor).multiset()

        with facade.open({"kind": "remote", "dsn": "sqlite://"}) as remote:
            remote.copy_to("patients")
            remote.copy_to("encounters")
            assert remote.run(descriptor).multiset() == expected
