"""Shared fixtures for worktree-runtime tests.

``FakeRunner`` stands in for git: responses are scripted per argv prefix and
every invocation is recorded, so tests can assert on the exact command
sequence without a real repository.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from grovekeeper.worktree_runtime.app import app
from grovekeeper.worktree_runtime.errors import CommandFailedError
from grovekeeper.worktree_runtime.git.runner import CommandOutput
from grovekeeper.worktree_runtime.managers.worktrees import WorktreeManager
from grovekeeper.worktree_runtime.models.worktree import ProjectSettingsRow
from grovekeeper.worktree_runtime.registry import WorktreeRegistry
from grovekeeper.worktree_runtime.store.sql import SqlProjectStore

FIXED_MILLIS = 1700000000000


@dataclass
class _Rule:
    prefix: tuple[str, ...]
    stdout: str = ""
    error: str | None = None
    effect: Callable[[tuple[str, ...], str | None], None] | None = None
    times: int | None = None


class FakeRunner:
    """Scripted ``CommandRunner``.

    Rules registered later win over earlier ones.  Unmatched commands succeed
    with empty output.  A rule with ``times`` expires after that many hits.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[tuple[str, ...], str | None]] = []
        self._rules: list[_Rule] = []

    def on(
        self,
        *prefix: str,
        stdout: str = "",
        error: str | None = None,
        effect: Callable[[tuple[str, ...], str | None], None] | None = None,
        times: int | None = None,
    ) -> None:
        self._rules.append(_Rule(prefix=prefix, stdout=stdout, error=error, effect=effect, times=times))

    def run(self, cmd: str, args: list[str], cwd: str | Path | None = None) -> CommandOutput:
        argv = (cmd, *args)
        cwd_str = str(cwd) if cwd is not None else None
        self.calls.append((argv, cwd_str))
        for rule in reversed(self._rules):
            if argv[: len(rule.prefix)] != rule.prefix:
                continue
            if rule.times is not None:
                if rule.times <= 0:
                    continue
                rule.times -= 1
            if rule.effect is not None:
                rule.effect(argv, cwd_str)
            if rule.error is not None:
                raise CommandFailedError(rule.error)
            return CommandOutput(stdout=rule.stdout)
        return CommandOutput()

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [argv for argv, _ in self.calls]

    def count(self, *prefix: str) -> int:
        return sum(1 for argv in self.commands if argv[: len(prefix)] == prefix)


@dataclass
class FakeProjectStore:
    rows: dict[str, ProjectSettingsRow] = field(default_factory=dict)
    updates: list[tuple[str, str]] = field(default_factory=list)
    fail_updates: bool = False

    def get_project_settings(self, project_id: str) -> ProjectSettingsRow:
        try:
            return self.rows[project_id]
        except KeyError:
            msg = f"Project '{project_id}' not found"
            raise LookupError(msg) from None

    def update_project_base_ref(self, project_id: str, full_ref: str) -> None:
        if self.fail_updates:
            msg = "database is locked"
            raise RuntimeError(msg)
        self.updates.append((project_id, full_ref))


@dataclass
class FakePreferences:
    template: str = "agent/{slug}-{timestamp}"
    push: bool = False

    def branch_template(self) -> str:
        return self.template

    def push_on_create(self) -> bool:
        return self.push


def _mkdir_worktree(argv: tuple[str, ...], _cwd: str | None) -> None:
    """Mimic ``git worktree add [-b <branch>] <path> <ref>`` creating the directory."""
    path = argv[5] if argv[3] == "-b" else argv[3]
    Path(path).mkdir(parents=True)


@pytest.fixture
def runner() -> FakeRunner:
    fake = FakeRunner()
    fake.on("git", "worktree", "add", effect=_mkdir_worktree)
    return fake


@pytest.fixture
def project_store() -> FakeProjectStore:
    return FakeProjectStore(rows={"proj": ProjectSettingsRow()})


@pytest.fixture
def preferences() -> FakePreferences:
    return FakePreferences()


@pytest.fixture
def registry() -> WorktreeRegistry:
    return WorktreeRegistry()


@pytest.fixture
def manager(
    registry: WorktreeRegistry,
    project_store: FakeProjectStore,
    preferences: FakePreferences,
    runner: FakeRunner,
) -> WorktreeManager:
    return WorktreeManager(
        registry=registry,
        project_store=project_store,
        preferences=preferences,
        runner=runner,
        clock=lambda: FIXED_MILLIS,
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
async def client(
    sql_store: SqlProjectStore,
    registry: WorktreeRegistry,
    preferences: FakePreferences,
    runner: FakeRunner,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with the SQLite project store.

    The app lifespan does NOT run under ``ASGITransport``, so the state it
    would create is pre-set here, with git scripted through ``runner``.
    """
    app.state.db_engine = None
    app.state.project_store = sql_store
    app.state.registry = registry
    app.state.worktree_manager = WorktreeManager(
        registry=registry,
        project_store=sql_store,
        preferences=preferences,
        runner=runner,
        clock=lambda: FIXED_MILLIS,
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.project_store = None
    app.state.worktree_manager = None
