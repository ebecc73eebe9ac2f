"""In-process worktree registry.

Tracks the workspaces created by this process.  Ephemeral -- empty on
process restart; ``WorktreeManager.list_worktrees`` rediscovers managed
workspaces from ``git worktree list`` in that case.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger

from grovekeeper.worktree_runtime.git.identity import canonical_path

if TYPE_CHECKING:
    from grovekeeper.worktree_runtime.models.worktree import WorkspaceInfo


class WorktreeRegistry:
    """Thread-safe map of workspace id -> ``WorkspaceInfo``.

    Owned by the application context and handed to the manager; never a
    module-level singleton.  The lock is held only while the dict is read or
    mutated, never while a git process runs.  Every read returns deep copies,
    so callers can't mutate registered records.
    """

    def __init__(self) -> None:
        self._worktrees: dict[str, WorkspaceInfo] = {}
        self._lock = threading.Lock()

    # -- Mutation --------------------------------------------------------------

    def register(self, info: WorkspaceInfo) -> None:
        with self._lock:
            self._worktrees[info.id] = info.model_copy(deep=True)
        logger.debug("Registry: register worktree {} ({})", info.id, info.path)

    def unregister(self, worktree_id: str) -> WorkspaceInfo | None:
        with self._lock:
            info = self._worktrees.pop(worktree_id, None)
        if info:
            logger.debug("Registry: unregister worktree {}", worktree_id)
        return info

    # -- Query -----------------------------------------------------------------

    def get(self, worktree_id: str) -> WorkspaceInfo | None:
        with self._lock:
            info = self._worktrees.get(worktree_id)
            return info.model_copy(deep=True) if info else None

    def find_by_path(self, path: str) -> WorkspaceInfo | None:
        """Return the tracked workspace at *path* (compared canonically), if any."""
        target = canonical_path(path)
        for info in self.all_worktrees():
            if info.path == path or canonical_path(info.path) == target:
                return info
        return None

    def all_worktrees(self) -> list[WorkspaceInfo]:
        """Return a snapshot of all tracked workspaces."""
        with self._lock:
            return [info.model_copy(deep=True) for info in self._worktrees.values()]

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._worktrees)
