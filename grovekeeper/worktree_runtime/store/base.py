"""Collaborator interfaces consumed by the worktree lifecycle.

The lifecycle never talks to the project database or the settings store
directly; it goes through these protocols so either side can be swapped
(SQL, in-memory fakes in tests, a desktop settings file, ...).

Both protocols are synchronous: lifecycle operations already run on a worker
thread, and implementations are expected to be safe to call from one.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from grovekeeper.worktree_runtime.models.worktree import ProjectSettingsRow


@runtime_checkable
class ProjectSettingsStore(Protocol):
    """Per-project git hints (remote, branch, base ref)."""

    def get_project_settings(self, project_id: str) -> ProjectSettingsRow:
        """Return the settings row.  Raises ``LookupError`` if the project is unknown."""
        ...

    def update_project_base_ref(self, project_id: str, full_ref: str) -> None:
        """Persist a corrected ``remote/branch`` base ref for the project."""
        ...


@runtime_checkable
class RepositoryPreferences(Protocol):
    """User-level repository preferences from the settings store."""

    def branch_template(self) -> str:
        """Template with ``{slug}`` / ``{timestamp}`` placeholders."""
        ...

    def push_on_create(self) -> bool:
        """Whether new branches are pushed upstream right after creation."""
        ...
