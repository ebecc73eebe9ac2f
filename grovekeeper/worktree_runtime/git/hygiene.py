"""Per-workspace housekeeping applied right after ``git worktree add``."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

CODEX_STREAM_LOG = "codex-stream.log"
CLAUDE_SETTINGS = Path(".claude") / "settings.json"


def resolve_git_dir(worktree_path: Path) -> Path:
    """Return the workspace's git directory.

    In a linked worktree ``.git`` is a file containing ``gitdir: <path>``
    pointing at ``<repo>/.git/worktrees/<name>``; in a regular checkout it is
    the directory itself.
    """
    git_meta = worktree_path / ".git"
    git_dir = git_meta
    if git_meta.is_file():
        for line in git_meta.read_text(encoding="utf-8").splitlines():
            if line.startswith("gitdir:"):
                target = line.removeprefix("gitdir:").strip()
                if target:
                    # Relative targets are relative to the workspace; absolute ones win the join.
                    git_dir = worktree_path / target
    return git_dir


def resolve_common_dir(git_dir: Path) -> Path:
    """Return the repository directory shared by all worktrees.

    A linked worktree's git dir holds a ``commondir`` file naming the main
    ``.git`` directory (relative to the git dir, or absolute).  Git reads
    ``info/exclude`` from there, never from the per-worktree directory.
    """
    commondir_file = git_dir / "commondir"
    if commondir_file.is_file():
        target = commondir_file.read_text(encoding="utf-8").strip()
        if target:
            return git_dir / target
    return git_dir


def ensure_codex_log_ignored(worktree_path: Path) -> bool:
    """Add ``codex-stream.log`` to the ``info/exclude`` git reads for the workspace.

    For a linked worktree that is the main repository's exclude file, so the
    entry applies to every worktree of the project.

    Returns ``True`` if the file was changed, ``False`` if the entry was
    already present.
    """
    exclude_path = resolve_common_dir(resolve_git_dir(worktree_path)) / "info" / "exclude"
    exclude_path.parent.mkdir(parents=True, exist_ok=True)

    current = exclude_path.read_text(encoding="utf-8") if exclude_path.exists() else ""
    if any(line.strip() == CODEX_STREAM_LOG for line in current.splitlines()):
        return False

    if current and not current.endswith("\n"):
        current += "\n"
    exclude_path.write_text(f"{current}{CODEX_STREAM_LOG}\n", encoding="utf-8")
    logger.debug("Hygiene: excluded {} in {}", CODEX_STREAM_LOG, exclude_path)
    return True


def ensure_claude_auto_approve(worktree_path: Path) -> Path:
    """Merge ``defaultMode: bypassPermissions`` into ``.claude/settings.json``.

    Existing keys are preserved; an unreadable or non-object file is replaced.
    """
    settings_path = worktree_path / CLAUDE_SETTINGS
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    settings: dict = {}
    if settings_path.exists():
        try:
            existing = json.loads(settings_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            existing = None
        if isinstance(existing, dict):
            settings = existing

    settings["defaultMode"] = "bypassPermissions"
    settings_path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")
    logger.debug("Hygiene: auto-approve enabled in {}", settings_path)
    return settings_path
