"""Shared test fixtures for the orgtree test suite.

Every test gets a fresh in-memory SQLite database with foreign keys
enforced. ``StaticPool`` keeps a single connection alive so the schema and
data survive across the TestClient's worker threads.

The ``engine`` fixture is parametrized over the three storage strategies,
so any test that requests it runs once per strategy.
"""

import os

# Use an in-memory database and plain log lines before any app imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FORMAT"] = "text"
os.environ["HIERARCHY_STRATEGY"] = "closure"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orgtree import models  # noqa: F401
from orgtree.core.config import HierarchyStrategy, settings
from orgtree.database import Base, enable_sqlite_foreign_keys, get_db
from orgtree.main import app
from orgtree.services import build_engine

TEST_MAX_NAME_LENGTH = 20


@pytest.fixture()
def db_engine():
    """Per-test in-memory SQLite engine with the schema created."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def db(db_engine):
    """Per-test database session."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    yield session
    session.close()


@pytest.fixture(params=list(HierarchyStrategy), ids=lambda s: s.value)
def engine(request, db):
    """Each hierarchy engine in turn, bound to the test session."""
    return build_engine(db, strategy=request.param, max_name_length=TEST_MAX_NAME_LENGTH)


@pytest.fixture(params=list(HierarchyStrategy), ids=lambda s: s.value)
def strategy(request, monkeypatch):
    """Configured strategy for API tests; the app reads it per request."""
    monkeypatch.setattr(settings, "hierarchy_strategy", request.param)
    return request.param


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_tree(engine):
    """Build the A -> B -> C chain used throughout the suite."""
    a = engine.create_node("A")
    b = engine.create_node("B", parent_id=a.id)
    c = engine.create_node("C", parent_id=b.id)
    return a, b, c
