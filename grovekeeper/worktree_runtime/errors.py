"""Domain errors raised by the worktree runtime.

Managers and git helpers raise these; the HTTP routers and the CLI translate
them into ``{"success": false, "error": ...}`` envelopes.  Each subclass
carries a stable ``code`` that is exposed to clients as ``errorCode``.
"""

from __future__ import annotations


class WorktreeError(RuntimeError):
    """Base class for every failure surfaced by a worktree operation."""

    code = "error"


class InvalidArgumentError(WorktreeError, ValueError):
    """A required input was blank or missing."""

    code = "invalid_argument"


class PathConflictError(WorktreeError):
    """The target workspace directory already exists."""

    code = "path_conflict"


class BaseRefUnresolvableError(WorktreeError):
    """The project's base ref could not be determined."""

    code = "base_ref_unresolvable"


class FetchFailedError(WorktreeError):
    """Fetching the base ref (and its fallback) from the remote failed."""

    code = "fetch_failed"


class CommandFailedError(WorktreeError):
    """An external command exited non-zero or could not be started.

    The message is the trimmed stderr, else the trimmed stdout, else a
    generic ``"Command failed"``.
    """

    code = "command_failed"


class DirectoryNotCreatedError(WorktreeError):
    """``git worktree add`` reported success but the directory is missing."""

    code = "directory_not_created"


class RemovalFailedError(WorktreeError):
    """The workspace directory could not be deleted, even after chmod."""

    code = "removal_failed"


class WorktreeNotFoundError(WorktreeError, LookupError):
    """No tracked workspace has the given id."""

    code = "not_found"
