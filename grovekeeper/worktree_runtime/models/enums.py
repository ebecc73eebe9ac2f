"""Shared enumerations used across the worktree runtime."""

from __future__ import annotations

from enum import StrEnum


class WorkspaceStatus(StrEnum):
    """Lifecycle state of a tracked workspace.

    Only ``active`` is modeled: removal deletes the record instead of
    transitioning it.
    """

    ACTIVE = "active"
