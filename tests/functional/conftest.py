"""Functional test bootstrap.

Points the service at a file-backed SQLite database under ``tmp/`` before
any app import, applies migrations once per session, and resets stored
state between tests.
"""

from __future__ import annotations

import os
import pathlib

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]

from ordersync.config import load_config  # noqa: E402
from ordersync.db.base import get_engine  # noqa: E402
from ordersync.db.migrations_runner import apply_migrations  # noqa: E402
from ordersync.logic import events  # noqa: E402
from ordersync.logic.document_store import InMemoryDocumentStore  # noqa: E402
from ordersync.logic.repository_items import SqlDocumentStore  # noqa: E402
from ordersync.logic.repository_visits import reset_visits  # noqa: E402
from fakes import make_items  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: apply migrations once for the shared DB."""
    apply_migrations(get_engine(os.environ["TEST_DATABASE_URL"]))
    yield


@pytest.fixture(autouse=True)
def clean_state():
    events.EVENT_BUFFER.clear()
    SqlDocumentStore(get_engine()).reset()
    reset_visits()
    yield


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def seeded_store(memory_store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    for item in make_items("A", "B", "C"):
        memory_store.insert("instructions", item)
    return memory_store


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from ordersync.main import create_app

    with TestClient(create_app()) as c:
        yield c
