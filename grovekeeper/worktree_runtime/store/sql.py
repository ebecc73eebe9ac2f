"""SQL-backed project settings store.

Implements ``ProjectSettingsStore`` on top of the ``projects`` table.  Each
call opens its own short-lived session, so one instance can be shared by
every worker thread.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from grovekeeper.worktree_runtime.db.tables import Project
from grovekeeper.worktree_runtime.models.worktree import ProjectSettingsRow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker


class ProjectNotFoundError(LookupError):
    """Raised when a project is not found."""


class SqlProjectStore:
    """Project settings persisted through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # -- ProjectSettingsStore --------------------------------------------------

    def get_project_settings(self, project_id: str) -> ProjectSettingsRow:
        with self._session_factory() as db:
            project = db.get(Project, project_id)
            if project is None:
                msg = f"Project '{project_id}' not found"
                raise ProjectNotFoundError(msg)
            return ProjectSettingsRow(
                git_remote=project.git_remote,
                git_branch=project.git_branch,
                base_ref=project.base_ref,
            )

    def update_project_base_ref(self, project_id: str, full_ref: str) -> None:
        """Store *full_ref* as the project's base ref.  Raises ``ProjectNotFoundError``."""
        with self._session_factory() as db:
            project = db.get(Project, project_id)
            if project is None:
                msg = f"Project '{project_id}' not found"
                raise ProjectNotFoundError(msg)
            project.base_ref = full_ref
            db.commit()
        logger.info("Project {}: base ref updated to {}", project_id, full_ref)

    # -- Management ------------------------------------------------------------

    def upsert_project(self, project_id: str, **fields: str | None) -> Project:
        """Create the project row or overwrite the given fields on it."""
        with self._session_factory() as db:
            project = db.get(Project, project_id)
            if project is None:
                project = Project(project_id=project_id)
                db.add(project)
            for key, value in fields.items():
                setattr(project, key, value)
            db.commit()
            db.refresh(project)
            return project

    def get_project(self, project_id: str) -> Project:
        """Get a project row by ID.  Raises ``ProjectNotFoundError`` if missing."""
        with self._session_factory() as db:
            project = db.get(Project, project_id)
            if project is None:
                msg = f"Project '{project_id}' not found"
                raise ProjectNotFoundError(msg)
            return project
