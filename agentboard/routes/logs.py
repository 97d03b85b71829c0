#  AgentBoard - Execution Log & Research Sheet Routes
#
#  Read access to a project's execution history and research output, plus
#  client-side log annotations.
#
#  Depends on: container.py, services/progress.py, routes/projects.py
#  Used by:    app.py

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends

from agentboard.container import Container
from agentboard.db.connection import Database
from agentboard.models.schemas import LogCreate, LogOut, ResearchSheetOut
from agentboard.routes.projects import get_project_or_404
from agentboard.services.progress import ProgressManager

router = APIRouter(prefix="/projects/{project_id}", tags=["logs"])


@router.get("/logs")
@inject
async def list_logs(
    project_id: str,
    task_id: str | None = None,
    db: Database = Depends(Provide[Container.db]),
    progress: ProgressManager = Depends(Provide[Container.progress]),
) -> list[LogOut]:
    await get_project_or_404(db, project_id)
    return [LogOut(**r) for r in await progress.get_logs(project_id, task_id)]


@router.post("/logs", status_code=201)
@inject
async def create_log(
    project_id: str,
    body: LogCreate,
    db: Database = Depends(Provide[Container.db]),
    progress: ProgressManager = Depends(Provide[Container.progress]),
) -> LogOut:
    await get_project_or_404(db, project_id)
    log_id = await progress.add_log(project_id, body.task_id, body.type, body.content)
    row = await db.fetchone("SELECT * FROM execution_logs WHERE id = ?", (log_id,))
    return LogOut(**dict(row))


@router.get("/research-sheets")
@inject
async def list_research_sheets(
    project_id: str,
    db: Database = Depends(Provide[Container.db]),
    progress: ProgressManager = Depends(Provide[Container.progress]),
) -> list[ResearchSheetOut]:
    await get_project_or_404(db, project_id)
    return [ResearchSheetOut(**r) for r in await progress.get_research_sheets(project_id)]
