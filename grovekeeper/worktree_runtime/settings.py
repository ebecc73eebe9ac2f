"""Service configuration loaded from GROVE_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from grovekeeper.worktree_runtime.git.naming import DEFAULT_BRANCH_TEMPLATE


class GroveSettings(BaseSettings):
    """Grovekeeper settings.

    All fields are read from environment variables with the ``GROVE_`` prefix.
    For example, ``GROVE_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="GROVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Project database ------------------------------------------------------
    database_url: str = "sqlite:///./data/grovekeeper.db"
    """SQLAlchemy URL of the project database (projects + git hints)."""

    # -- Repository preferences ------------------------------------------------
    branch_template: str = DEFAULT_BRANCH_TEMPLATE
    """Branch naming template; ``{slug}`` and ``{timestamp}`` are substituted."""

    push_on_create: bool = True
    """Push each new workspace branch with ``--set-upstream origin``."""

    # -- Server ----------------------------------------------------------------
    host: str = "127.0.0.1"
    port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> GroveSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return GroveSettings()
