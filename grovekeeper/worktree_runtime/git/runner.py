"""External command execution.

Every git invocation made by the runtime goes through a ``CommandRunner``.
The production implementation shells out with ``subprocess``; tests swap in
a scripted fake.

Calls are synchronous and have no timeout.  A process waiting on input (for
example a credential prompt) blocks the calling operation until it exits, so
callers on an event loop must dispatch through a worker thread.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from grovekeeper.worktree_runtime.errors import CommandFailedError


@dataclass(frozen=True)
class CommandOutput:
    """Captured result of a successful command."""

    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


@runtime_checkable
class CommandRunner(Protocol):
    """Runs an external program.

    Implementations raise ``CommandFailedError`` on non-zero exit.
    """

    def run(self, cmd: str, args: list[str], cwd: str | Path | None = None) -> CommandOutput: ...


def format_output_error(stdout: str, stderr: str) -> str:
    """Pick the most useful failure message from a command's output."""
    err = stderr.strip()
    if err:
        return err
    out = stdout.strip()
    if out:
        return out
    return "Command failed"


class SubprocessRunner:
    """``CommandRunner`` backed by ``subprocess.run``."""

    def run(self, cmd: str, args: list[str], cwd: str | Path | None = None) -> CommandOutput:
        logger.debug("Run: {} {} (cwd={})", cmd, " ".join(args), cwd)
        try:
            completed = subprocess.run(  # noqa: S603
                [cmd, *args],
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as exc:
            logger.debug("Run: {} could not be started: {}", cmd, exc)
            raise CommandFailedError(str(exc)) from exc

        if completed.returncode != 0:
            msg = format_output_error(completed.stdout, completed.stderr)
            logger.debug("Run: {} exited {}: {}", cmd, completed.returncode, msg)
            raise CommandFailedError(msg)

        return CommandOutput(stdout=completed.stdout, stderr=completed.stderr, returncode=completed.returncode)


def git(runner: CommandRunner, *args: str, cwd: str | Path | None = None) -> CommandOutput:
    """Run ``git <args>`` through *runner*."""
    return runner.run("git", list(args), cwd)
