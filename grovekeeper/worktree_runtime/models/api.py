"""API request / response schemas.

Worktree endpoints never raise past the HTTP boundary: every response is an
envelope with ``success`` plus either a payload or ``error`` / ``errorCode``.
Project endpoints are plain CRUD and use HTTP status codes like the rest of
the service.

All schemas use camelCase on the wire (``projectPath``, ``worktreeId``) and
also accept snake_case input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Self

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from grovekeeper.worktree_runtime.errors import WorktreeError
from grovekeeper.worktree_runtime.models.worktree import CamelModel, WorkspaceInfo, WorktreeStatus

# ---------------------------------------------------------------------------
# Worktree requests
#
# String fields default to "" so a missing field reaches the manager and comes
# back as an ``invalid_argument`` envelope rather than a 422.
# ---------------------------------------------------------------------------


class WorktreeCreateRequest(CamelModel):
    project_path: str = ""
    task_name: str = ""
    project_id: str = ""
    auto_approve: bool | None = None


class WorktreeCreateFromBranchRequest(CamelModel):
    project_path: str = ""
    branch_name: str = ""
    project_id: str = ""
    task_name: str = ""
    worktree_path: str | None = None


class WorktreeListRequest(CamelModel):
    project_path: str = ""


class WorktreeRemoveRequest(CamelModel):
    project_path: str = ""
    worktree_id: str = ""
    worktree_path: str | None = Field(default=None, description="Used when the worktree is not tracked.")
    branch: str | None = Field(default=None, description="Used when the worktree is not tracked.")


class WorktreeMergeRequest(CamelModel):
    project_path: str = ""
    worktree_id: str = ""


class WorktreeStatusRequest(CamelModel):
    worktree_path: str = ""


class FetchBaseRefRequest(CamelModel):
    project_id: str = ""
    project_path: str = ""


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class OperationResult(CamelModel):
    """Success flag plus error details; subclasses add the payload."""

    success: bool = True
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def failure(cls, exc: WorktreeError) -> Self:
        return cls(success=False, error=str(exc), error_code=exc.code)


class WorktreeResult(OperationResult):
    worktree: WorkspaceInfo | None = None


class WorktreeListResult(OperationResult):
    worktrees: list[WorkspaceInfo] = Field(default_factory=list)


class WorktreeStatusResult(OperationResult):
    status: WorktreeStatus | None = None


class BaseRefResult(OperationResult):
    base_ref: str | None = None
    remote: str | None = None
    branch: str | None = None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectUpsert(CamelModel):
    """Create a project or overwrite the fields explicitly provided.

    Routers should use ``body.model_dump(exclude_unset=True)`` so omitted
    fields are left untouched on an existing row.
    """

    project_id: str
    name: str | None = None
    path: str | None = None
    git_remote: str | None = None
    git_branch: str | None = None
    base_ref: str | None = None


class ProjectResponse(CamelModel):
    """Serialized project row returned to clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    project_id: str
    name: str | None = None
    path: str | None = None
    git_remote: str | None = None
    git_branch: str | None = None
    base_ref: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
