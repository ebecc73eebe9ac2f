"""Repository preferences backed by ``GroveSettings``."""

from __future__ import annotations

from grovekeeper.worktree_runtime.git.naming import DEFAULT_BRANCH_TEMPLATE
from grovekeeper.worktree_runtime.settings import GroveSettings


class SettingsPreferences:
    """``RepositoryPreferences`` read from environment-driven settings.

    A blank template falls back to ``agent/{slug}-{timestamp}``.
    """

    def __init__(self, settings: GroveSettings) -> None:
        self._settings = settings

    def branch_template(self) -> str:
        template = self._settings.branch_template
        if not template.strip():
            return DEFAULT_BRANCH_TEMPLATE
        return template

    def push_on_create(self) -> bool:
        return self._settings.push_on_create
