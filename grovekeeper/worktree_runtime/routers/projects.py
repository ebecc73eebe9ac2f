"""Project settings endpoints (RPC-style).

Projects carry the git hints (remote, branch, base ref) the worktree
lifecycle resolves a fork point from.
"""

from __future__ import annotations

from functools import partial

from anyio import to_thread
from fastapi import APIRouter, HTTPException, status

from grovekeeper.worktree_runtime.db.tables import Project
from grovekeeper.worktree_runtime.deps import Manager, ProjectStore
from grovekeeper.worktree_runtime.errors import WorktreeError
from grovekeeper.worktree_runtime.models.api import (
    BaseRefResult,
    FetchBaseRefRequest,
    ProjectResponse,
    ProjectUpsert,
)
from grovekeeper.worktree_runtime.store.sql import ProjectNotFoundError

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("/upsert", response_model=ProjectResponse)
async def upsert_project(body: ProjectUpsert, store: ProjectStore) -> Project:
    """Create a project or update the provided fields."""
    changes = body.model_dump(exclude_unset=True, exclude={"project_id"})
    return await to_thread.run_sync(partial(store.upsert_project, body.project_id, **changes))


@router.get("/{project_id}/settings", response_model=ProjectResponse)
async def get_project_settings(project_id: str, store: ProjectStore) -> Project:
    """Get a project's git settings."""
    try:
        return await to_thread.run_sync(partial(store.get_project, project_id))
    except ProjectNotFoundError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Project '{project_id}' not found.") from None


@router.post("/fetch-base-ref", response_model=BaseRefResult)
async def fetch_base_ref(body: FetchBaseRefRequest, manager: Manager) -> BaseRefResult:
    """Resolve and fetch the project's base ref, correcting it if the remote lost it."""
    try:
        info = await to_thread.run_sync(partial(manager.fetch_base_ref, body.project_id, body.project_path))
    except WorktreeError as exc:
        return BaseRefResult.failure(exc)
    return BaseRefResult(base_ref=info.full_ref, remote=info.remote, branch=info.branch)
