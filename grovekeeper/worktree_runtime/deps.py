"""FastAPI dependency injection for the worktree manager and project store.

Usage in route handlers::

    @router.post("/things")
    async def do_thing(body: ThingRequest, manager: Manager) -> ThingResult:
        ...

Both objects are created in the app lifespan and kept on ``app.state``.
Dependencies raise HTTP 503 if the lifespan has not initialised them.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from grovekeeper.worktree_runtime.managers.worktrees import WorktreeManager
from grovekeeper.worktree_runtime.store.sql import SqlProjectStore


def get_manager(request: Request) -> WorktreeManager:
    manager: WorktreeManager | None = getattr(request.app.state, "worktree_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Worktree manager not initialised.",
        )
    return manager


def get_project_store(request: Request) -> SqlProjectStore:
    store: SqlProjectStore | None = getattr(request.app.state, "project_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Project database not configured.",
        )
    return store


# -- Annotated type aliases for concise route signatures ---------------------

Manager = Annotated[WorktreeManager, Depends(get_manager)]
"""Annotated dependency: the process-wide worktree manager."""

ProjectStore = Annotated[SqlProjectStore, Depends(get_project_store)]
"""Annotated dependency: the SQL project settings store."""
