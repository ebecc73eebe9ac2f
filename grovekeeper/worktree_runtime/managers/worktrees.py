"""Worktree manager -- create / list / remove / merge orchestration.

The WorktreeManager is a process-level object initialised in the app lifespan
(or per CLI invocation).  It coordinates between:

- **Registry**: in-memory records of workspaces created by this process
- **git** (via ``CommandRunner``): the durable worktree and branch state
- **Project store**: per-project base-ref hints, corrected on fetch fallback
- **Preferences**: branch template and push-on-create flag

Every method is blocking.  Async callers must dispatch through a worker
thread (``anyio.to_thread.run_sync``).  Methods raise ``WorktreeError``
subclasses; translating them into response envelopes is the caller's job.
"""

from __future__ import annotations

import os
import re
import shutil
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from grovekeeper.worktree_runtime.errors import (
    BaseRefUnresolvableError,
    CommandFailedError,
    DirectoryNotCreatedError,
    InvalidArgumentError,
    PathConflictError,
    RemovalFailedError,
    WorktreeError,
    WorktreeNotFoundError,
)
from grovekeeper.worktree_runtime.git.base_ref import (
    fetch_base_ref_with_fallback,
    get_default_branch,
    resolve_project_base_ref,
)
from grovekeeper.worktree_runtime.git.hygiene import ensure_claude_auto_approve, ensure_codex_log_ignored
from grovekeeper.worktree_runtime.git.identity import stable_id_from_path
from grovekeeper.worktree_runtime.git.naming import extract_template_prefix, render_branch_template, slugify
from grovekeeper.worktree_runtime.git.runner import CommandRunner, SubprocessRunner, git
from grovekeeper.worktree_runtime.models.worktree import (
    BaseRefInfo,
    ProjectSettingsRow,
    WorkspaceInfo,
    WorktreeStatus,
)

if TYPE_CHECKING:
    from grovekeeper.worktree_runtime.registry import WorktreeRegistry
    from grovekeeper.worktree_runtime.store.base import ProjectSettingsStore, RepositoryPreferences

WORKTREES_DIR = "worktrees"
MANAGED_PREFIXES = ("agent", "pr", "orch")
_PREFIX_SEPARATORS = ("/", "-", ".", "_")

# "<path> <sha> [<branch>]" -- the path itself may contain spaces.
_WORKTREE_LINE = re.compile(r"^(?P<path>.+?)\s+(?P<head>[0-9a-f]{4,})\s+\[(?P<branch>[^\]]+)\]")


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def default_worktree_path(project_path: str | Path, dirname: str) -> Path:
    """``<project>/../worktrees/<dirname>`` as an absolute, symlink-free path.

    Normalized so it matches the paths ``git worktree list`` prints.
    """
    return (Path(project_path) / ".." / WORKTREES_DIR / dirname).resolve()


def parse_worktree_list(stdout: str) -> list[tuple[str, str]]:
    """Extract ``(path, branch)`` pairs from ``git worktree list`` output.

    Bare and detached entries carry no ``[branch]`` and are skipped.
    """
    entries: list[tuple[str, str]] = []
    for line in stdout.splitlines():
        if "[" not in line or "]" not in line:
            continue
        match = _WORKTREE_LINE.match(line)
        if match:
            entries.append((match["path"], match["branch"]))
            continue
        parts = line.split()
        if parts:
            branch = line.split("[", 1)[1].split("]", 1)[0]
            entries.append((parts[0], branch))
    return entries


def managed_prefixes(template: str) -> list[str]:
    """Built-in managed prefixes plus the first segment of *template*."""
    prefixes = list(MANAGED_PREFIXES)
    prefix = extract_template_prefix(template)
    if prefix and prefix not in prefixes:
        prefixes.append(prefix)
    return prefixes


def is_managed_branch(branch: str, prefixes: list[str]) -> bool:
    """Heuristic: does *branch* look like one this runtime created?

    A user branch that happens to share a managed prefix is misclassified;
    there is no on-disk manifest to tell them apart.
    """
    for prefix in prefixes:
        if branch == prefix:
            return True
        if any(branch.startswith(prefix + sep) for sep in _PREFIX_SEPARATORS):
            return True
    return False


def parse_porcelain_status(stdout: str) -> WorktreeStatus:
    """Classify ``git status --porcelain`` lines into staged/unstaged/untracked."""
    status = WorktreeStatus()
    for line in stdout.splitlines():
        if not line.strip() or len(line) < 4:
            continue
        if line.startswith("??"):
            status.untracked_files.append(line[3:])
            continue

        index, tree = line[0], line[1]
        file = line[3:]
        if " -> " in file:
            file = file.split(" -> ", 1)[1]
        if index in "AMDRC":
            status.staged_files.append(file)
        if tree in "MD":
            status.unstaged_files.append(file)

    status.has_changes = bool(status.staged_files or status.unstaged_files or status.untracked_files)
    return status


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class WorktreeManager:
    """Manages the full workspace lifecycle (create -> list -> merge/remove).

    Stateless beyond its references to the registry and collaborators.
    """

    def __init__(
        self,
        registry: WorktreeRegistry,
        project_store: ProjectSettingsStore,
        preferences: RepositoryPreferences,
        runner: CommandRunner | None = None,
        *,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        self._registry = registry
        self._project_store = project_store
        self._preferences = preferences
        self._runner = runner or SubprocessRunner()
        self._clock = clock

    @property
    def registry(self) -> WorktreeRegistry:
        return self._registry

    # -- Create ----------------------------------------------------------------

    def create_worktree(
        self,
        project_path: str,
        task_name: str,
        project_id: str,
        *,
        auto_approve: bool = False,
    ) -> WorkspaceInfo:
        """Create a workspace on a new branch forked from the project's base ref.

        Nothing is left behind on failure: the base ref is fetched before
        ``git worktree add`` runs, and every step up to and including the add
        aborts the operation.  Hygiene and the upstream push are best-effort.
        """
        project_path = project_path.strip()
        task_name = task_name.strip()
        project_id = project_id.strip()
        if not project_path or not task_name or not project_id:
            msg = "Missing required parameters"
            raise InvalidArgumentError(msg)

        slug = slugify(task_name)
        timestamp = str(self._clock())
        branch = render_branch_template(self._preferences.branch_template(), slug, timestamp)
        worktree_path = default_worktree_path(project_path, f"{slug}-{timestamp}")
        self._prepare_target(worktree_path)

        fetched = self.fetch_base_ref(project_id, project_path)

        git(
            self._runner,
            "worktree",
            "add",
            "-b",
            branch,
            str(worktree_path),
            fetched.full_ref,
            cwd=project_path,
        )
        self._verify_created(worktree_path)

        self._apply_hygiene(worktree_path, auto_approve=auto_approve)

        info = WorkspaceInfo(
            id=stable_id_from_path(worktree_path),
            name=task_name,
            branch=branch,
            path=str(worktree_path),
            project_id=project_id,
        )
        self._registry.register(info)
        logger.bind(worktree_id=info.id).info(
            "Worktree: created on {} from {} at {}", branch, fetched.full_ref, worktree_path
        )

        if self._preferences.push_on_create():
            try:
                git(self._runner, "push", "--set-upstream", "origin", branch, cwd=worktree_path)
            except CommandFailedError as exc:
                logger.warning("Worktree: push of {} failed (workspace kept): {}", branch, exc)

        return info

    def create_worktree_from_branch(
        self,
        project_path: str,
        task_name: str,
        branch_name: str,
        project_id: str,
        worktree_path: str | None = None,
    ) -> WorkspaceInfo:
        """Check out an existing branch into a new workspace (e.g. a PR branch)."""
        project_path = project_path.strip()
        branch_name = branch_name.strip()
        project_id = project_id.strip()
        if not project_path or not branch_name or not project_id:
            msg = "Missing required parameters"
            raise InvalidArgumentError(msg)

        name = task_name.strip() or branch_name.replace("/", "-")
        if worktree_path and worktree_path.strip():
            target = Path(worktree_path.strip()).resolve()
        else:
            target = default_worktree_path(project_path, f"{slugify(name)}-{self._clock()}")
        self._prepare_target(target)

        try:
            git(self._runner, "worktree", "add", str(target), branch_name, cwd=project_path)
        except CommandFailedError as exc:
            msg = f"Failed to create worktree for branch {branch_name}: {exc}"
            raise CommandFailedError(msg) from exc
        self._verify_created(target)

        self._apply_hygiene(target, auto_approve=False)

        info = WorkspaceInfo(
            id=stable_id_from_path(target),
            name=name,
            branch=branch_name,
            path=str(target),
            project_id=project_id,
        )
        self._registry.register(info)
        logger.bind(worktree_id=info.id).info("Worktree: created on existing branch {} at {}", branch_name, target)
        return info

    # -- Query -----------------------------------------------------------------

    def list_worktrees(self, project_path: str) -> list[WorkspaceInfo]:
        """Reconcile ``git worktree list`` with the registry.

        Registered workspaces are returned verbatim; unregistered ones on a
        managed branch are synthesized (e.g. after a restart); everything
        else is omitted.
        """
        project_path = project_path.strip()
        if not project_path:
            msg = "projectPath is required"
            raise InvalidArgumentError(msg)

        output = git(self._runner, "worktree", "list", cwd=project_path)
        prefixes = managed_prefixes(self._preferences.branch_template())
        project_name = Path(project_path).name or project_path
        worktrees: list[WorkspaceInfo] = []
        for path, branch in parse_worktree_list(output.stdout):
            existing = self._registry.find_by_path(path)
            if existing is not None:
                worktrees.append(existing)
            elif is_managed_branch(branch, prefixes):
                worktrees.append(
                    WorkspaceInfo(
                        id=stable_id_from_path(path),
                        name=Path(path).name or path,
                        branch=branch,
                        path=path,
                        project_id=project_name,
                    )
                )
        return worktrees

    def get_worktree(self, worktree_id: str) -> WorkspaceInfo:
        info = self._registry.get(worktree_id)
        if info is None:
            msg = "Worktree not found"
            raise WorktreeNotFoundError(msg)
        return info

    def all_worktrees(self) -> list[WorkspaceInfo]:
        return self._registry.all_worktrees()

    def worktree_status(self, worktree_path: str) -> WorktreeStatus:
        worktree_path = worktree_path.strip()
        if not worktree_path:
            msg = "worktreePath is required"
            raise InvalidArgumentError(msg)
        output = git(self._runner, "status", "--porcelain", "--untracked-files=all", cwd=worktree_path)
        return parse_porcelain_status(output.stdout)

    # -- Base ref --------------------------------------------------------------

    def fetch_base_ref(self, project_id: str, project_path: str) -> BaseRefInfo:
        """Resolve the project's base ref and fetch it (with fallback)."""
        project_id = project_id.strip()
        project_path = project_path.strip()
        if not project_id or not project_path:
            msg = "projectId and projectPath are required"
            raise InvalidArgumentError(msg)

        row = self._load_settings_row(project_id)
        base_ref = resolve_project_base_ref(self._runner, project_path, row)
        return fetch_base_ref_with_fallback(self._runner, self._project_store, project_path, project_id, base_ref)

    def _load_settings_row(self, project_id: str) -> ProjectSettingsRow:
        try:
            return self._project_store.get_project_settings(project_id)
        except LookupError as exc:
            raise BaseRefUnresolvableError(str(exc)) from exc

    # -- Remove ----------------------------------------------------------------

    def remove_worktree(
        self,
        project_path: str,
        worktree_id: str,
        worktree_path: str | None = None,
        branch: str | None = None,
    ) -> None:
        """Tear down a workspace, its branch, and its registry entry.

        The registry entry wins over the explicit *worktree_path* / *branch*.
        Only failing to delete the directory is fatal; worktree metadata,
        branch and remote cleanup are best-effort, which makes repeated calls
        safe.
        """
        project_path = project_path.strip()
        if not project_path:
            msg = "projectPath is required"
            raise InvalidArgumentError(msg)

        existing = self._registry.get(worktree_id)
        path_to_remove = existing.path if existing else (worktree_path or "")
        branch_to_delete = existing.branch if existing else branch
        if not path_to_remove.strip():
            msg = "Worktree path not provided"
            raise InvalidArgumentError(msg)

        try:
            git(self._runner, "worktree", "remove", "--force", path_to_remove, cwd=project_path)
        except CommandFailedError as exc:
            logger.debug("Worktree: git worktree remove {} failed: {}", path_to_remove, exc)
        self._prune(project_path)

        self._delete_directory(Path(path_to_remove))

        if branch_to_delete and branch_to_delete.strip():
            self._delete_branch(project_path, branch_to_delete.strip())

        if existing is not None:
            self._registry.unregister(worktree_id)
        logger.bind(worktree_id=worktree_id).info("Worktree: removed {}", path_to_remove)

    def _prune(self, project_path: str) -> None:
        try:
            git(self._runner, "worktree", "prune", "--verbose", cwd=project_path)
        except CommandFailedError as exc:
            logger.debug("Worktree: prune failed: {}", exc)

    def _delete_directory(self, path: Path) -> None:
        """Recursively delete *path*, granting write permission once on ``PermissionError``."""
        if not os.path.lexists(path):
            return
        try:
            shutil.rmtree(path)
        except PermissionError as exc:
            logger.warning("Worktree: permission denied removing {}, retrying after chmod: {}", path, exc)
            self._grant_write_permission(path)
            try:
                shutil.rmtree(path)
            except OSError as retry_exc:
                msg = f"Failed to remove {path}: {retry_exc}"
                raise RemovalFailedError(msg) from retry_exc
        except OSError as exc:
            msg = f"Failed to remove {path}: {exc}"
            raise RemovalFailedError(msg) from exc

    def _grant_write_permission(self, path: Path) -> None:
        try:
            if os.name == "nt":
                self._runner.run("cmd", ["/C", "attrib", "-R", "/S", "/D", f"{path}\\*"])
            else:
                self._runner.run("chmod", ["-R", "u+w", str(path)])
        except CommandFailedError as exc:
            logger.warning("Worktree: could not grant write permission on {}: {}", path, exc)

    def _delete_branch(self, project_path: str, branch: str) -> None:
        try:
            git(self._runner, "branch", "-D", branch, cwd=project_path)
        except CommandFailedError as exc:
            if "checked out at" in str(exc):
                # Stale worktree metadata still claims the branch.
                self._prune(project_path)
                try:
                    git(self._runner, "branch", "-D", branch, cwd=project_path)
                except CommandFailedError as retry_exc:
                    logger.warning("Worktree: could not delete branch {}: {}", branch, retry_exc)
            else:
                logger.debug("Worktree: could not delete branch {}: {}", branch, exc)

        remote_branch = branch.removeprefix("origin/")
        try:
            git(self._runner, "push", "origin", "--delete", remote_branch, cwd=project_path)
        except CommandFailedError as exc:
            logger.debug("Worktree: remote branch {} not deleted: {}", remote_branch, exc)

    # -- Merge -----------------------------------------------------------------

    def merge_worktree(self, project_path: str, worktree_id: str) -> None:
        """Merge the workspace branch into the default branch, then remove it.

        Requires a tracked workspace.  If checkout or merge fails the
        workspace and its registry entry are kept for manual resolution.
        """
        project_path = project_path.strip()
        if not project_path:
            msg = "projectPath is required"
            raise InvalidArgumentError(msg)
        if not worktree_id.strip():
            msg = "worktreeId is required"
            raise InvalidArgumentError(msg)

        worktree = self.get_worktree(worktree_id.strip())
        default_branch = get_default_branch(self._runner, project_path)

        git(self._runner, "checkout", default_branch, cwd=project_path)
        try:
            git(self._runner, "merge", worktree.branch, cwd=project_path)
        except CommandFailedError:
            try:
                git(self._runner, "merge", "--abort", cwd=project_path)
            except CommandFailedError as abort_exc:
                logger.debug("Worktree: merge --abort failed: {}", abort_exc)
            raise
        logger.bind(worktree_id=worktree.id).info("Worktree: merged {} into {}", worktree.branch, default_branch)

        try:
            self.remove_worktree(project_path, worktree.id, worktree.path, worktree.branch)
        except WorktreeError as exc:
            logger.warning("Worktree: cleanup after merging {} failed: {}", worktree.id, exc)

    # -- Internals -------------------------------------------------------------

    def _prepare_target(self, worktree_path: Path) -> None:
        if worktree_path.exists():
            msg = f"Worktree directory already exists: {worktree_path}"
            raise PathConflictError(msg)
        try:
            worktree_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Could not create {worktree_path.parent}: {exc}"
            raise DirectoryNotCreatedError(msg) from exc

    def _verify_created(self, worktree_path: Path) -> None:
        if not worktree_path.exists():
            msg = f"Worktree directory was not created: {worktree_path}"
            raise DirectoryNotCreatedError(msg)

    def _apply_hygiene(self, worktree_path: Path, *, auto_approve: bool) -> None:
        try:
            ensure_codex_log_ignored(worktree_path)
            if auto_approve:
                ensure_claude_auto_approve(worktree_path)
        except (OSError, ValueError) as exc:
            # An undecodable .git or exclude file raises UnicodeDecodeError.
            logger.warning("Worktree: hygiene failed for {}: {}", worktree_path, exc)
