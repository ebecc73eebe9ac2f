"""Base ref resolution: which upstream branch a new workspace forks from.

Resolution order for a project's settings row:

1. ``base_ref`` parsed as ``remote/branch`` (remote must be configured).
2. ``base_ref`` as a local branch name that exists (``refs/heads/...``).
3. ``git_branch`` when set and free of whitespace.
4. The HEAD branch ``origin`` advertises, else ``main``.

Fetching goes through ``fetch_base_ref_with_fallback``: when the remote no
longer has the branch (renamed, deleted), the default branch is tried
instead and the corrected ref is written back to the project store so later
resolutions skip the stale value.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from grovekeeper.worktree_runtime.errors import CommandFailedError, FetchFailedError
from grovekeeper.worktree_runtime.git.runner import CommandRunner, git
from grovekeeper.worktree_runtime.models.worktree import BaseRefInfo, ProjectSettingsRow

if TYPE_CHECKING:
    from grovekeeper.worktree_runtime.store.base import ProjectSettingsStore

DEFAULT_REMOTE = "origin"
DEFAULT_BRANCH = "main"

MISSING_REMOTE_REF_SIGNATURES = (
    "couldn't find remote ref",
    "could not find remote ref",
    "remote ref does not exist",
    "remote end hung up unexpectedly",
    "no such ref was fetched",
)


def get_default_branch(runner: CommandRunner, project_path: str | Path) -> str:
    """Branch ``origin`` advertises as HEAD, or ``main`` if that is unknown."""
    try:
        output = git(runner, "remote", "show", "origin", cwd=project_path)
    except CommandFailedError as exc:
        logger.debug("Default branch lookup failed, using {}: {}", DEFAULT_BRANCH, exc)
        return DEFAULT_BRANCH

    for line in output.stdout.splitlines():
        _, marker, rest = line.partition("HEAD branch:")
        if marker:
            branch = rest.strip()
            # "(unknown)" is printed for remotes without a HEAD.
            if branch and not branch.startswith("("):
                return branch
    return DEFAULT_BRANCH


def list_remotes(runner: CommandRunner, project_path: str | Path) -> list[str] | None:
    """Configured remote names, or ``None`` when ``git remote`` fails."""
    try:
        output = git(runner, "remote", cwd=project_path)
    except CommandFailedError:
        return None
    return [line.strip() for line in output.stdout.splitlines() if line.strip()]


def parse_base_ref(
    raw: str,
    runner: CommandRunner | None = None,
    project_path: str | Path | None = None,
) -> BaseRefInfo | None:
    """Parse ``[refs/remotes/|remotes/]<remote>/<branch>``.

    When *project_path* is given, the remote must be one of the project's
    configured remotes.  If the remotes cannot be listed the check is skipped.
    """
    cleaned = raw.strip().removeprefix("refs/remotes/").removeprefix("remotes/").strip()
    if not cleaned or "/" not in cleaned:
        return None

    remote, _, branch = cleaned.partition("/")
    remote = remote.strip()
    branch = branch.strip()
    if not remote or not branch:
        return None

    if runner is not None and project_path is not None:
        remotes = list_remotes(runner, project_path)
        if remotes is not None and remote not in remotes:
            return None

    return BaseRefInfo(remote=remote, branch=branch)


def resolve_project_base_ref(
    runner: CommandRunner,
    project_path: str | Path,
    row: ProjectSettingsRow,
) -> BaseRefInfo:
    """Pick the ref a new workspace should fork from (see module docstring)."""
    default_remote = (row.git_remote or "").strip() or DEFAULT_REMOTE

    if row.base_ref is not None:
        info = parse_base_ref(row.base_ref, runner, project_path)
        if info is not None:
            return info

        local_branch = row.base_ref.strip()
        if local_branch and _local_branch_exists(runner, project_path, local_branch):
            return BaseRefInfo(remote=default_remote, branch=local_branch)

    git_branch = (row.git_branch or "").strip()
    if git_branch and not any(ch.isspace() for ch in git_branch):
        return BaseRefInfo(remote=default_remote, branch=git_branch)

    return BaseRefInfo(remote=default_remote, branch=get_default_branch(runner, project_path))


def _local_branch_exists(runner: CommandRunner, project_path: str | Path, branch: str) -> bool:
    try:
        git(runner, "rev-parse", "--verify", f"refs/heads/{branch}", cwd=project_path)
    except CommandFailedError:
        return False
    return True


def is_missing_remote_ref_error(message: str) -> bool:
    msg = message.lower()
    return any(signature in msg for signature in MISSING_REMOTE_REF_SIGNATURES)


def fetch_base_ref_with_fallback(
    runner: CommandRunner,
    project_store: ProjectSettingsStore,
    project_path: str | Path,
    project_id: str,
    base_ref: BaseRefInfo,
) -> BaseRefInfo:
    """Fetch *base_ref*, falling back to ``origin/<default>`` if it is gone.

    Returns the ref that was actually fetched.  Raises ``FetchFailedError``
    when neither can be fetched.
    """
    try:
        git(runner, "fetch", base_ref.remote, base_ref.branch, cwd=project_path)
    except CommandFailedError as exc:
        err = str(exc)
    else:
        return base_ref

    if not is_missing_remote_ref_error(err):
        msg = f"Failed to fetch {base_ref.full_ref}: {err}"
        raise FetchFailedError(msg)

    fallback = BaseRefInfo(remote=DEFAULT_REMOTE, branch=get_default_branch(runner, project_path))
    if fallback.full_ref == base_ref.full_ref:
        msg = f"Failed to fetch {base_ref.full_ref}: {err}"
        raise FetchFailedError(msg)

    logger.warning("Base ref {} is missing on the remote, trying {}", base_ref.full_ref, fallback.full_ref)
    try:
        git(runner, "fetch", fallback.remote, fallback.branch, cwd=project_path)
    except CommandFailedError as exc:
        msg = (
            f"Failed to fetch base branch. Tried {base_ref.full_ref} and {fallback.full_ref}. "
            f"{exc} Please verify the branch exists on the remote."
        )
        raise FetchFailedError(msg) from exc

    try:
        project_store.update_project_base_ref(project_id, fallback.full_ref)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Project {}: could not persist base ref {}: {}", project_id, fallback.full_ref, exc)

    return fallback
