"""Data models for the worktree runtime."""

from grovekeeper.worktree_runtime.models.api import (
    BaseRefResult,
    FetchBaseRefRequest,
    OperationResult,
    ProjectResponse,
    ProjectUpsert,
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
from grovekeeper.worktree_runtime.models.enums import WorkspaceStatus
from grovekeeper.worktree_runtime.models.worktree import (
    BaseRefInfo,
    ProjectSettingsRow,
    WorkspaceInfo,
    WorktreeStatus,
)

__all__ = [
    # Domain
    "BaseRefInfo",
    # API schemas
    "BaseRefResult",
    "FetchBaseRefRequest",
    "OperationResult",
    "ProjectResponse",
    "ProjectSettingsRow",
    "ProjectUpsert",
    "WorkspaceInfo",
    # Enums
    "WorkspaceStatus",
    "WorktreeCreateFromBranchRequest",
    "WorktreeCreateRequest",
    "WorktreeListRequest",
    "WorktreeListResult",
    "WorktreeMergeRequest",
    "WorktreeRemoveRequest",
    "WorktreeResult",
    "WorktreeStatus",
    "WorktreeStatusRequest",
    "WorktreeStatusResult",
]
