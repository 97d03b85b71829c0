#  AgentBoard - Run Preparation
#
#  Guards and prepares a run before the stream opens: claims the project
#  (at most one active run), resolves and resets the task list, provisions
#  the build workspace, and issues the run's cancellation handle.
#
#  Depends on: config.py, db/connection.py, exceptions.py, models/*,
#              services/run_handle.py
#  Used by:    container.py, routes/execute.py

import logging
import re
import time
from pathlib import Path

from agentboard.config import WORKSPACE_ROOT
from agentboard.db.connection import Database
from agentboard.exceptions import InvalidStateError, NotFoundError
from agentboard.models.enums import ProjectMode, ProjectStatus, TaskStatus
from agentboard.models.schemas import RunRequest, RunTask
from agentboard.services.run_handle import RunHandle

logger = logging.getLogger("agentboard.runs")


def workspace_slug(identifier: str, name: str = "") -> str:
    """Directory name for a project's workspace: sanitised identifier, else name."""
    raw = identifier or re.sub(r"[^a-zA-Z0-9-_]", "-", name)
    slug = re.sub(r"[^a-z0-9-_]", "-", raw.lower()).strip("-")
    return slug or "project"


def unique_tasks(tasks: list[RunTask]) -> list[RunTask]:
    """Drop repeated task ids, keeping each at its first position."""
    first: dict[str, RunTask] = {}
    for task in tasks:
        first.setdefault(task.id, task)
    return list(first.values())

class RunService:
    """Caller side of the executor: everything that must happen before streaming."""

    def __init__(self, db: Database, workspace_root: Path | str = WORKSPACE_ROOT):
        self._db = db
        self._workspace_root = Path(workspace_root)

    def provision_workspace(self, identifier: str, name: str = "") -> Path:
        path = self._workspace_root / workspace_slug(identifier, name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    async def prepare(self, body: RunRequest) -> tuple[RunRequest, RunHandle]:
        if not body.project_id:
            return await self._prepare_adhoc(body)

        project = await self._db.fetchone("SELECT * FROM projects WHERE id = ?", (body.project_id,))
        if not project:
            raise NotFoundError(f"Project {body.project_id} not found")

        rows = await self._db.fetchall(
            "SELECT * FROM tasks WHERE project_id = ? ORDER BY position ASC, created_at ASC",
            (body.project_id,),
        )
        by_id = {r["id"]: r for r in rows}

        if body.tasks is None:
            requested = [
                RunTask(id=r["id"], title=r["title"], description=r["description"])
                for r in rows
            ]
        else:
            unknown = [t.id for t in body.tasks if t.id not in by_id]
            if unknown:
                raise NotFoundError(f"Task(s) not in project {body.project_id}: {', '.join(unknown)}")
            requested = unique_tasks(body.tasks)

        # Done tasks are preserved and never restarted
        run_tasks = [t for t in requested if by_id[t.id]["status"] != TaskStatus.DONE]

        now = time.time()
        async with self._db.transaction():
            cursor = await self._db.execute_write(
                "UPDATE projects SET status = ?, updated_at = ? WHERE id = ? AND status != ?",
                (ProjectStatus.EXECUTING, now, body.project_id, ProjectStatus.EXECUTING),
            )
            if cursor.rowcount == 0:
                raise InvalidStateError(f"Project {body.project_id} is already executing")
            await self._db.execute_write(
                "UPDATE tasks SET status = ?, output = '', updated_at = ? "
                "WHERE project_id = ? AND status != ?",
                (TaskStatus.TODO, now, body.project_id, TaskStatus.DONE),
            )

        mode = ProjectMode(body.mode if "mode" in body.model_fields_set else project["mode"])
        prepared = RunRequest(
            tasks=run_tasks,
            project_id=body.project_id,
            project_name=body.project_name or project["name"],
            project_identifier=body.project_identifier or project["identifier"],
            mode=mode,
        )
        if mode == ProjectMode.BUILD:
            try:
                workspace = self.provision_workspace(prepared.project_identifier, prepared.project_name)
            except OSError:
                await self._db.execute_write(
                    "UPDATE projects SET status = ?, updated_at = ? WHERE id = ?",
                    (ProjectStatus.FAILED, time.time(), body.project_id),
                )
                raise
            prepared.workspace_dir = str(workspace)

        logger.info(
            "Prepared run for project %s: %d of %d task(s) to execute",
            body.project_id, len(run_tasks), len(requested),
        )
        return prepared, RunHandle(body.project_id)

    async def _prepare_adhoc(self, body: RunRequest) -> tuple[RunRequest, RunHandle]:
        """Run without a persisted project. Nothing is claimed, reset or recorded."""
        prepared = body.model_copy(update={"tasks": unique_tasks(body.tasks or [])})
        if prepared.mode == ProjectMode.BUILD:
            if not (prepared.project_identifier or prepared.project_name):
                raise InvalidStateError("An ad-hoc build run needs a project name or identifier")
            workspace = self.provision_workspace(prepared.project_identifier, prepared.project_name)
            prepared.workspace_dir = str(workspace)
        return prepared, RunHandle()
