"""Shared test fixtures: settings isolation and the project database.

The project database is an in-memory SQLite engine with a ``StaticPool`` so
every session (including those opened from worker threads) sees the same
data.  No external services are required.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool

from grovekeeper.worktree_runtime.db.engine import create_engine, create_session_factory, init_schema
from grovekeeper.worktree_runtime.settings import get_settings
from grovekeeper.worktree_runtime.store.sql import SqlProjectStore


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> Iterator[None]:
    """Point settings at a throwaway database and drop the settings cache."""
    data_dir = tmp_path_factory.mktemp("data")
    monkeypatch.setenv("GROVE_DATABASE_URL", f"sqlite:///{data_dir / 'grovekeeper.db'}")
    monkeypatch.setenv("GROVE_PUSH_ON_CREATE", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Function-scoped: in-memory project database
# ---------------------------------------------------------------------------


@pytest.fixture
def db_engine() -> Iterator[Engine]:
    """In-memory SQLite engine with the schema applied."""
    engine = create_engine("sqlite://", poolclass=StaticPool)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(db_engine: Engine) -> SqlProjectStore:
    return SqlProjectStore(create_session_factory(db_engine))
