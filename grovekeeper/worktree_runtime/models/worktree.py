"""Worktree domain models.

A workspace is one isolated ``git worktree`` checkout bound to a freshly
created branch.  Records live in the in-process ``WorktreeRegistry`` only;
the durable truth is what ``git worktree list`` reports.

All models serialize with camelCase field names (``projectId``,
``createdAt``, ...) and accept either spelling on input.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from grovekeeper.worktree_runtime.models.enums import WorkspaceStatus


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def utcnow() -> datetime:
    return datetime.now(UTC)


class WorkspaceInfo(CamelModel):
    """One isolated working directory."""

    id: str
    name: str
    branch: str
    path: str
    project_id: str
    status: WorkspaceStatus = WorkspaceStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime | None = None
    """Populated by collaborators (terminal activity); never set here."""


class BaseRefInfo(CamelModel):
    """Resolved fork point: ``{remote}/{branch}``."""

    remote: str
    branch: str

    @computed_field(alias="fullRef")
    @property
    def full_ref(self) -> str:
        return f"{self.remote}/{self.branch}"


class ProjectSettingsRow(CamelModel):
    """Operator-provided git hints for a project.  Possibly stale or invalid."""

    git_remote: str | None = None
    git_branch: str | None = None
    base_ref: str | None = None


class WorktreeStatus(CamelModel):
    """Working-tree changes reported by ``git status --porcelain``."""

    has_changes: bool = False
    staged_files: list[str] = Field(default_factory=list)
    unstaged_files: list[str] = Field(default_factory=list)
    untracked_files: list[str] = Field(default_factory=list)
