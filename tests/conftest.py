"""Shared fixtures: every test gets a fresh in-memory user directory."""

import pytest

from shaken import database
from shaken.registry import Registry
from shaken.testing import Environment


@pytest.fixture(autouse=True)
def memory_database():
    database.close_connection()
    database.configure(database.MEMORY_DB)
    yield database.get_connection()
    database.close_connection()


@pytest.fixture
def registry():
    return Registry()


@pytest.fixture
def env():
    return Environment()
