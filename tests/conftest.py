"""
Pytest configuration and shared fixtures for tabquery tests.
"""

import pytest

from tabquery import QueryBuilder, QueryFacade, SchemaRegistry, col


PATIENT_COLUMNS = ["patient", "birthdate", "gender"]
PATIENT_ROWS = [
    ("p1", "1980-01-01", "M"),
    ("p2", "1975-06-15", "F"),
    ("p3", "1990-03-20", "M"),
    ("p4", "2000-11-11", "F"),
]

ENCOUNTER_COLUMNS = ["PATIENT", "DESCRIPTION", "DATE"]
ENCOUNTER_ROWS = [
    ("p1", "Checkup", "2016-03-01"),
    ("p1", "Flu shot", "2014-10-10"),
    ("p2", "Checkup", "2017-05-05"),
    ("p3", "Follow-up", "2018-01-01"),
    ("p5", "Orphan visit", "2019-01-01"),
]


@pytest.fixture
def registry():
    """Registry with the patients and encounters tables and their rows."""
    registry = SchemaRegistry(allow_re_register=False)
    registry.register("patients", PATIENT_COLUMNS, data=PATIENT_ROWS)
    registry.register("encounters", ENCOUNTER_COLUMNS, data=ENCOUNTER_ROWS)
    return registry


@pytest.fixture
def facade(registry):
    return QueryFacade(registry)


@pytest.fixture
def embedded(facade):
    """Open embedded connection, closed after the test."""
    conn = facade.open({"kind": "embedded"})
    yield conn
    conn.close()


@pytest.fixture
def remote(facade):
    """Open in-memory SQLite connection, closed after the test."""
    conn = facade.open({"kind": "remote", "dsn": "sqlite://", "timeoutSeconds": 5})
    yield conn
    conn.close()


@pytest.fixture
def seeded_remote(remote):
    """Remote connection with the registered tables copied to the server."""
    remote.copy_to("patients")
    remote.copy_to("encounters")
    return remote


@pytest.fixture
def recent_male_encounters():
    """Male patients' encounters since 2015, with the description aliased."""
    return (
        QueryBuilder()
        .from_("patients")
        .join("encounters", left_key="patient", right_key="PATIENT", kind="left")
        .select("patient", ("DESCRIPTION", "description"))
        .filter(col("gender") == "M")
        .filter("DATE", ">=", "2015-01-01")
        .build()
    )
