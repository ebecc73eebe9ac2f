from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from grovekeeper.worktree_runtime.db.engine import create_engine, create_session_factory, init_schema
from grovekeeper.worktree_runtime.log import setup_logging
from grovekeeper.worktree_runtime.managers.worktrees import WorktreeManager
from grovekeeper.worktree_runtime.registry import WorktreeRegistry
from grovekeeper.worktree_runtime.settings import get_settings
from grovekeeper.worktree_runtime.store.preferences import SettingsPreferences
from grovekeeper.worktree_runtime.store.sql import SqlProjectStore


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Grovekeeper starting (host={}, port={})", settings.host, settings.port)

    # -- Project database ------------------------------------------------------
    engine = create_engine(settings.database_url)
    init_schema(engine)
    _app.state.db_engine = engine
    _app.state.project_store = SqlProjectStore(create_session_factory(engine))
    logger.info("Project database: {}", engine.url.render_as_string(hide_password=True))

    # -- Worktree manager ------------------------------------------------------
    # The registry lives exactly as long as the app: empty on every restart.
    _app.state.registry = WorktreeRegistry()
    _app.state.worktree_manager = WorktreeManager(
        registry=_app.state.registry,
        project_store=_app.state.project_store,
        preferences=SettingsPreferences(settings),
    )
    logger.info("WorktreeManager: initialised (template={})", settings.branch_template)

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Grovekeeper shutting down (tracked_worktrees={})", _app.state.registry.active_count)
    engine.dispose()
    logger.info("Project database: disposed")


app = FastAPI(title="Grovekeeper", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from grovekeeper.worktree_runtime.routers.projects import router as projects_router  # noqa: E402
from grovekeeper.worktree_runtime.routers.worktrees import router as worktrees_router  # noqa: E402

api.include_router(worktrees_router)
api.include_router(projects_router)

app.include_router(api)
