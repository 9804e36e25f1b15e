"""Fixtures for storage layer tests."""

import pytest

from remitflow.storage.database import base as database


@pytest.fixture(scope="function", autouse=True)
def test_db():
    """
    Initialize the module-level engine on an in-memory SQLite database.

    Runs automatically for all tests in this package and disposes the engine
    afterwards.
    """
    database.init_db("sqlite:///:memory:")

    yield

    if database.engine is not None:
        database.engine.dispose()
    database.engine = None
    database.SessionLocal = None
