#  AgentBoard - Project Routes
#
#  CRUD for board projects. Each project carries its tasks inline.
#
#  Depends on: container.py, db/connection.py, models/schemas.py
#  Used by:    app.py, routes/tasks.py, routes/logs.py

import re
import time
import uuid

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, HTTPException

from agentboard.container import Container
from agentboard.db.connection import Database
from agentboard.models.enums import ProjectStatus
from agentboard.models.schemas import ProjectCreate, ProjectOut, ProjectUpdate, TaskOut

router = APIRouter(prefix="/projects", tags=["projects"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def generate_identifier(name: str) -> str:
    """Up to four upper-case initials of the name's words, or ``PRJ``."""
    words = re.sub(r"[^a-zA-Z0-9\s]", "", name).split()
    return "".join(w[0].upper() for w in words)[:4] or "PRJ"


def _row_to_task(row) -> TaskOut:
    return TaskOut(**dict(row))


async def _row_to_project(row, db: Database, task_rows: list | None = None) -> ProjectOut:
    """Convert a DB row to a ProjectOut. Pass task_rows to skip the per-project query."""
    if task_rows is None:
        task_rows = await db.fetchall(
            "SELECT * FROM tasks WHERE project_id = ? ORDER BY position ASC, created_at ASC",
            (row["id"],),
        )
    return ProjectOut(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        identifier=row["identifier"],
        mode=row["mode"],
        status=row["status"],
        created_at=row["created_at"],
        tasks=[_row_to_task(t) for t in task_rows],
    )


async def get_project_or_404(db: Database, project_id: str):
    row = await db.fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
    if not row:
        raise HTTPException(404, f"Project {project_id} not found")
    return row


def require_idle(project) -> None:
    """Board edits are refused while a run owns the project."""
    if project["status"] == ProjectStatus.EXECUTING:
        raise HTTPException(409, f"Project {project['id']} is executing")


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@router.post("", status_code=201)
@inject
async def create_project(
    body: ProjectCreate,
    db: Database = Depends(Provide[Container.db]),
) -> ProjectOut:
    project_id = uuid.uuid4().hex[:12]
    now = time.time()
    identifier = body.identifier or generate_identifier(body.name)

    await db.execute_write(
        "INSERT INTO projects (id, name, description, identifier, mode, status, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (project_id, body.name, body.description, identifier, body.mode, ProjectStatus.IDLE, now, now),
    )

    row = await db.fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
    return await _row_to_project(row, db, task_rows=[])


@router.get("")
@inject
async def list_projects(
    db: Database = Depends(Provide[Container.db]),
) -> list[ProjectOut]:
    rows = await db.fetchall("SELECT * FROM projects ORDER BY created_at DESC")
    if not rows:
        return []

    # Batch-load tasks in a single query (avoids N+1)
    task_rows = await db.fetchall("SELECT * FROM tasks ORDER BY position ASC, created_at ASC")
    by_project: dict[str, list] = {}
    for t in task_rows:
        by_project.setdefault(t["project_id"], []).append(t)

    return [await _row_to_project(r, db, task_rows=by_project.get(r["id"], [])) for r in rows]


@router.get("/{project_id}")
@inject
async def get_project(
    project_id: str,
    db: Database = Depends(Provide[Container.db]),
) -> ProjectOut:
    row = await get_project_or_404(db, project_id)
    return await _row_to_project(row, db)


@router.patch("/{project_id}")
@inject
async def update_project(
    project_id: str,
    body: ProjectUpdate,
    db: Database = Depends(Provide[Container.db]),
) -> ProjectOut:
    row = await get_project_or_404(db, project_id)
    require_idle(row)
    if body.status == ProjectStatus.EXECUTING:
        raise HTTPException(400, "Status 'executing' is set only by starting a run")

    updates = []
    params = []
    for column in ("name", "description", "identifier", "mode", "status"):
        value = getattr(body, column)
        if value is not None:
            updates.append(f"{column} = ?")
            params.append(value)

    if not updates:
        raise HTTPException(400, "No fields to update")

    updates.append("updated_at = ?")
    params.append(time.time())
    params.extend([project_id, ProjectStatus.EXECUTING])

    # A run may have claimed the project since the check above
    cursor = await db.execute_write(
        f"UPDATE projects SET {', '.join(updates)} WHERE id = ? AND status != ?",
        params,
    )
    if cursor.rowcount == 0:
        raise HTTPException(409, f"Project {project_id} is executing")

    row = await db.fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
    return await _row_to_project(row, db)


@router.delete("/{project_id}", status_code=204)
@inject
async def delete_project(
    project_id: str,
    db: Database = Depends(Provide[Container.db]),
):
    row = await get_project_or_404(db, project_id)
    require_idle(row)
    # Cascade deletes handle tasks, logs, research sheets
    await db.execute_write("DELETE FROM projects WHERE id = ?", (project_id,))
