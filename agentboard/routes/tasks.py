#  AgentBoard - Task Routes
#
#  Board task management under a project: list, create, update, delete.
#  Direct edits are refused while the project is executing.
#
#  Depends on: container.py, models/schemas.py, routes/projects.py
#  Used by:    app.py

import time
import uuid

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, HTTPException

from agentboard.container import Container
from agentboard.db.connection import Database
from agentboard.models.schemas import TaskCreate, TaskOut, TaskUpdate
from agentboard.routes.projects import get_project_or_404, require_idle

router = APIRouter(prefix="/projects/{project_id}/tasks", tags=["tasks"])


async def _get_task_or_404(db: Database, project_id: str, task_id: str):
    row = await db.fetchone(
        "SELECT * FROM tasks WHERE id = ? AND project_id = ?", (task_id, project_id),
    )
    if not row:
        raise HTTPException(404, f"Task {task_id} not found")
    return row


@router.get("")
@inject
async def list_tasks(
    project_id: str,
    db: Database = Depends(Provide[Container.db]),
) -> list[TaskOut]:
    await get_project_or_404(db, project_id)
    rows = await db.fetchall(
        "SELECT * FROM tasks WHERE project_id = ? ORDER BY position ASC, created_at ASC",
        (project_id,),
    )
    return [TaskOut(**dict(r)) for r in rows]


@router.post("", status_code=201)
@inject
async def create_task(
    project_id: str,
    body: TaskCreate,
    db: Database = Depends(Provide[Container.db]),
) -> TaskOut:
    project = await get_project_or_404(db, project_id)
    require_idle(project)

    task_id = uuid.uuid4().hex[:12]
    now = time.time()
    # New tasks go to the bottom of the board
    async with db.transaction():
        row = await db.fetchone(
            "SELECT COALESCE(MAX(position), -1) AS last FROM tasks WHERE project_id = ?",
            (project_id,),
        )
        await db.execute_write(
            "INSERT INTO tasks (id, project_id, title, description, status, priority, output, "
            "position, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, '', ?, ?, ?)",
            (task_id, project_id, body.title, body.description, body.status, body.priority,
             row["last"] + 1, now, now),
        )

    row = await db.fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
    return TaskOut(**dict(row))


@router.patch("/{task_id}")
@inject
async def update_task(
    project_id: str,
    task_id: str,
    body: TaskUpdate,
    db: Database = Depends(Provide[Container.db]),
) -> TaskOut:
    project = await get_project_or_404(db, project_id)
    require_idle(project)
    await _get_task_or_404(db, project_id, task_id)

    updates = []
    params = []
    for column in ("title", "description", "status", "priority", "output"):
        value = getattr(body, column)
        if value is not None:
            updates.append(f"{column} = ?")
            params.append(value)

    if not updates:
        raise HTTPException(400, "No fields to update")

    updates.append("updated_at = ?")
    params.append(time.time())
    params.append(task_id)

    await db.execute_write(f"UPDATE tasks SET {', '.join(updates)} WHERE id = ?", params)

    row = await db.fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
    return TaskOut(**dict(row))


@router.delete("/{task_id}", status_code=204)
@inject
async def delete_task(
    project_id: str,
    task_id: str,
    db: Database = Depends(Provide[Container.db]),
):
    project = await get_project_or_404(db, project_id)
    require_idle(project)
    await _get_task_or_404(db, project_id, task_id)
    await db.execute_write("DELETE FROM tasks WHERE id = ?", (task_id,))
