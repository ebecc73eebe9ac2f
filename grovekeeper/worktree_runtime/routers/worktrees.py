"""Worktree endpoints (RPC-style).

All operations use POST except the registry reads.  Manager calls block on
git, so each one is dispatched to a worker thread.  Domain errors come back
as ``{"success": false, "error": ..., "errorCode": ...}`` with HTTP 200.
"""

from __future__ import annotations

from functools import partial

from anyio import to_thread
from fastapi import APIRouter
from loguru import logger

from grovekeeper.worktree_runtime.deps import Manager
from grovekeeper.worktree_runtime.errors import WorktreeError
from grovekeeper.worktree_runtime.models.api import (
    OperationResult,
    WorktreeCreateFromBranchRequest,
    WorktreeCreateRequest,
    WorktreeListRequest,
    WorktreeListResult,
    WorktreeMergeRequest,
    WorktreeRemoveRequest,
    WorktreeResult,
    WorktreeStatusRequest,
    WorktreeStatusResult,
)

router = APIRouter(prefix="/worktrees", tags=["worktrees"])


@router.post("/create", response_model=WorktreeResult)
async def create_worktree(body: WorktreeCreateRequest, manager: Manager) -> WorktreeResult:
    """Create a workspace on a new branch for a task."""
    try:
        info = await to_thread.run_sync(
            partial(
                manager.create_worktree,
                body.project_path,
                body.task_name,
                body.project_id,
                auto_approve=bool(body.auto_approve),
            )
        )
    except WorktreeError as exc:
        logger.warning("Create worktree for '{}' failed: {}", body.task_name, exc)
        return WorktreeResult.failure(exc)
    return WorktreeResult(worktree=info)


@router.post("/create-from-branch", response_model=WorktreeResult)
async def create_worktree_from_branch(body: WorktreeCreateFromBranchRequest, manager: Manager) -> WorktreeResult:
    """Create a workspace checking out an existing branch."""
    try:
        info = await to_thread.run_sync(
            partial(
                manager.create_worktree_from_branch,
                body.project_path,
                body.task_name,
                body.branch_name,
                body.project_id,
                body.worktree_path,
            )
        )
    except WorktreeError as exc:
        logger.warning("Create worktree from branch '{}' failed: {}", body.branch_name, exc)
        return WorktreeResult.failure(exc)
    return WorktreeResult(worktree=info)


@router.post("/list", response_model=WorktreeListResult)
async def list_worktrees(body: WorktreeListRequest, manager: Manager) -> WorktreeListResult:
    """List tracked and rediscovered workspaces of a project."""
    try:
        worktrees = await to_thread.run_sync(partial(manager.list_worktrees, body.project_path))
    except WorktreeError as exc:
        return WorktreeListResult.failure(exc)
    return WorktreeListResult(worktrees=worktrees)


@router.post("/remove", response_model=OperationResult)
async def remove_worktree(body: WorktreeRemoveRequest, manager: Manager) -> OperationResult:
    """Remove a workspace, its branch, and its registry entry."""
    try:
        await to_thread.run_sync(
            partial(
                manager.remove_worktree,
                body.project_path,
                body.worktree_id,
                body.worktree_path,
                body.branch,
            )
        )
    except WorktreeError as exc:
        logger.warning("Remove worktree {} failed: {}", body.worktree_id, exc)
        return OperationResult.failure(exc)
    return OperationResult()


@router.post("/merge", response_model=OperationResult)
async def merge_worktree(body: WorktreeMergeRequest, manager: Manager) -> OperationResult:
    """Merge a tracked workspace into the default branch and remove it."""
    try:
        await to_thread.run_sync(partial(manager.merge_worktree, body.project_path, body.worktree_id))
    except WorktreeError as exc:
        logger.warning("Merge worktree {} failed: {}", body.worktree_id, exc)
        return OperationResult.failure(exc)
    return OperationResult()


@router.post("/status", response_model=WorktreeStatusResult)
async def worktree_status(body: WorktreeStatusRequest, manager: Manager) -> WorktreeStatusResult:
    """Staged, unstaged, and untracked files of a workspace."""
    try:
        status = await to_thread.run_sync(partial(manager.worktree_status, body.worktree_path))
    except WorktreeError as exc:
        return WorktreeStatusResult.failure(exc)
    return WorktreeStatusResult(status=status)


@router.get("/all", response_model=WorktreeListResult)
async def all_worktrees(manager: Manager) -> WorktreeListResult:
    """Every workspace tracked by this process."""
    return WorktreeListResult(worktrees=manager.all_worktrees())


@router.get("/{worktree_id}/get", response_model=WorktreeResult)
async def get_worktree(worktree_id: str, manager: Manager) -> WorktreeResult:
    """A single tracked workspace."""
    try:
        info = manager.get_worktree(worktree_id)
    except WorktreeError as exc:
        return WorktreeResult.failure(exc)
    return WorktreeResult(worktree=info)
