"""Shared fixtures for SQLRelate tests.

Each test module declares its own entity models on an abstract base with a
module-level MetaData, so table names can repeat between modules.
"""

import pytest
from sqlalchemy import create_engine


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database for each test."""
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()
