"""Stable workspace identity derived from the filesystem path."""

from __future__ import annotations

import hashlib
from pathlib import Path

ID_PREFIX = "wt-"


def canonical_path(path: str | Path) -> str:
    """Resolve symlinks and ``.``/``..`` segments; fall back to *path* as given."""
    try:
        return str(Path(path).resolve(strict=True))
    except (OSError, RuntimeError):
        return str(path)


def stable_id_from_path(path: str | Path) -> str:
    """``wt-`` + first 12 hex chars of the SHA-1 of the canonical path.

    The same directory always maps to the same id, so workspaces rediscovered
    on disk after a restart keep their identity.
    """
    digest = hashlib.sha1(canonical_path(path).encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{ID_PREFIX}{digest[:12]}"
