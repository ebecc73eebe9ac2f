from grovekeeper.worktree_runtime.store.base import ProjectSettingsStore, RepositoryPreferences

__all__ = ["ProjectSettingsStore", "RepositoryPreferences"]
