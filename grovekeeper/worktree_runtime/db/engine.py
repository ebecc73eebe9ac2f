"""SQLAlchemy engine and session factory.

The engine is synchronous: the project store is called from the worker
threads that run lifecycle operations, never from the event loop.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, make_url
from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.orm import Session, sessionmaker

from grovekeeper.worktree_runtime.db.tables import Base


def create_engine(database_url: str, **kwargs: object) -> Engine:
    """Create an engine for *database_url*.

    - **pool_pre_ping=True**: test connections before checkout to handle
      server-side disconnects.
    - For file-backed SQLite the parent directory is created and
      ``check_same_thread`` is disabled, since sessions are opened from
      worker threads.

    All defaults can be overridden via *kwargs*.
    """
    url = make_url(database_url)
    defaults: dict[str, object] = {"echo": False, "pool_pre_ping": True}
    if url.get_backend_name() == "sqlite":
        defaults["connect_args"] = {"check_same_thread": False}
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    defaults.update(kwargs)
    return sa_create_engine(url, **defaults)  # type: ignore[arg-type]


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to *engine*.

    ``expire_on_commit=False`` so that ORM instances remain usable after
    commit without a refresh round-trip.
    """
    return sessionmaker(engine, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create all tables that do not exist yet (idempotent)."""
    Base.metadata.create_all(engine)
