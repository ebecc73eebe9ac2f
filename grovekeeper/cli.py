import json
import sys

import click


@click.group()
def main() -> None:
    """Grovekeeper - isolated git worktrees for concurrent agent tasks."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from GROVE_HOST or 127.0.0.1).")
@click.option("--port", default=None, type=int, help="Bind port (default: from GROVE_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the HTTP API server."""
    import uvicorn

    from grovekeeper.worktree_runtime.settings import GroveSettings

    settings = GroveSettings()

    uvicorn.run(
        "grovekeeper.worktree_runtime.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


# ---------------------------------------------------------------------------
# Database management
# ---------------------------------------------------------------------------


@main.group()
def db() -> None:
    """Project database commands."""


@db.command()
def init() -> None:
    """Create the project database schema."""
    from grovekeeper.worktree_runtime.db.engine import create_engine, init_schema
    from grovekeeper.worktree_runtime.settings import GroveSettings

    engine = create_engine(GroveSettings().database_url)
    init_schema(engine)
    engine.dispose()
    click.echo("Database schema initialised.")


@db.command("set-project")
@click.argument("project_id")
@click.option("--name", default=None)
@click.option("--path", "path_", default=None, help="Repository path.")
@click.option("--remote", "git_remote", default=None, help="Git remote hint (default origin).")
@click.option("--branch", "git_branch", default=None, help="Git branch hint.")
@click.option("--base-ref", "base_ref", default=None, help="remote/branch to fork workspaces from.")
def set_project(
    project_id: str,
    name: str | None,
    path_: str | None,
    git_remote: str | None,
    git_branch: str | None,
    base_ref: str | None,
) -> None:
    """Create or update a project's git settings."""
    from grovekeeper.worktree_runtime.db.engine import create_engine, create_session_factory, init_schema
    from grovekeeper.worktree_runtime.settings import GroveSettings
    from grovekeeper.worktree_runtime.store.sql import SqlProjectStore

    engine = create_engine(GroveSettings().database_url)
    init_schema(engine)
    fields = {"name": name, "path": path_, "git_remote": git_remote, "git_branch": git_branch, "base_ref": base_ref}
    store = SqlProjectStore(create_session_factory(engine))
    store.upsert_project(project_id, **{k: v for k, v in fields.items() if v is not None})
    engine.dispose()
    click.echo(f"Project {project_id} saved.")


# ---------------------------------------------------------------------------
# Worktree commands
# ---------------------------------------------------------------------------


def _build_manager():
    """Build a manager with a fresh registry.

    Each CLI invocation is its own process, so ``list`` relies on on-disk
    discovery and ``remove`` needs ``--path`` / ``--branch``.
    """
    from grovekeeper.worktree_runtime.db.engine import create_engine, create_session_factory, init_schema
    from grovekeeper.worktree_runtime.log import setup_logging
    from grovekeeper.worktree_runtime.managers.worktrees import WorktreeManager
    from grovekeeper.worktree_runtime.registry import WorktreeRegistry
    from grovekeeper.worktree_runtime.settings import GroveSettings
    from grovekeeper.worktree_runtime.store.preferences import SettingsPreferences
    from grovekeeper.worktree_runtime.store.sql import SqlProjectStore

    settings = GroveSettings()
    setup_logging(settings.log_level)
    engine = create_engine(settings.database_url)
    init_schema(engine)
    return WorktreeManager(
        registry=WorktreeRegistry(),
        project_store=SqlProjectStore(create_session_factory(engine)),
        preferences=SettingsPreferences(settings),
    )


def _run(operation, result_cls, build_result) -> None:
    """Run *operation*, print the JSON envelope, exit 1 on failure."""
    from grovekeeper.worktree_runtime.errors import WorktreeError

    try:
        value = operation()
    except WorktreeError as exc:
        result = result_cls.failure(exc)
    else:
        result = build_result(value)
    click.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    if not result.success:
        sys.exit(1)


@main.group()
def worktree() -> None:
    """Create, list, inspect, and remove task worktrees."""


@worktree.command()
@click.argument("project_path")
@click.argument("task_name")
@click.option("--project-id", required=True, help="Project whose git settings to use.")
@click.option("--auto-approve", is_flag=True, default=False, help="Enable bypassPermissions for Claude.")
def create(project_path: str, task_name: str, project_id: str, auto_approve: bool) -> None:
    """Create a worktree on a new branch for TASK_NAME."""
    from grovekeeper.worktree_runtime.models.api import WorktreeResult

    manager = _build_manager()
    _run(
        lambda: manager.create_worktree(project_path, task_name, project_id, auto_approve=auto_approve),
        WorktreeResult,
        lambda info: WorktreeResult(worktree=info),
    )


@worktree.command("list")
@click.argument("project_path")
def list_(project_path: str) -> None:
    """List managed worktrees of PROJECT_PATH."""
    from grovekeeper.worktree_runtime.models.api import WorktreeListResult

    manager = _build_manager()
    _run(
        lambda: manager.list_worktrees(project_path),
        WorktreeListResult,
        lambda worktrees: WorktreeListResult(worktrees=worktrees),
    )


@worktree.command()
@click.argument("project_path")
@click.argument("worktree_id")
@click.option("--path", "worktree_path", default=None, help="Worktree directory.")
@click.option("--branch", default=None, help="Branch to delete.")
def remove(project_path: str, worktree_id: str, worktree_path: str | None, branch: str | None) -> None:
    """Remove a worktree, its directory, and its branch."""
    from grovekeeper.worktree_runtime.models.api import OperationResult

    manager = _build_manager()
    _run(
        lambda: manager.remove_worktree(project_path, worktree_id, worktree_path, branch),
        OperationResult,
        lambda _: OperationResult(),
    )


@worktree.command()
@click.argument("worktree_path")
def status(worktree_path: str) -> None:
    """Show staged, unstaged, and untracked files of a worktree."""
    from grovekeeper.worktree_runtime.models.api import WorktreeStatusResult

    manager = _build_manager()
    _run(
        lambda: manager.worktree_status(worktree_path),
        WorktreeStatusResult,
        lambda st: WorktreeStatusResult(status=st),
    )


@worktree.command("fetch-base-ref")
@click.argument("project_path")
@click.option("--project-id", required=True)
def fetch_base_ref(project_path: str, project_id: str) -> None:
    """Resolve and fetch the base ref new worktrees fork from."""
    from grovekeeper.worktree_runtime.models.api import BaseRefResult

    manager = _build_manager()
    _run(
        lambda: manager.fetch_base_ref(project_id, project_path),
        BaseRefResult,
        lambda info: BaseRefResult(base_ref=info.full_ref, remote=info.remote, branch=info.branch),
    )


if __name__ == "__main__":
    main()
