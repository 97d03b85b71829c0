#  AgentBoard - SSE Event Routes
#
#  Server-Sent Events for observers of a project's live run.
#
#  Depends on: container.py, services/progress.py, services/streaming.py
#  Used by:    app.py

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from agentboard.container import Container
from agentboard.db.connection import Database
from agentboard.routes.projects import get_project_or_404
from agentboard.services.progress import ProgressManager
from agentboard.services.streaming import SSE_HEADERS

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/{project_id}")
@inject
async def stream_project_events(
    project_id: str,
    db: Database = Depends(Provide[Container.db]),
    progress: ProgressManager = Depends(Provide[Container.progress]),
):
    """SSE stream mirroring the events of the project's active run."""
    await get_project_or_404(db, project_id)
    return StreamingResponse(
        progress.subscribe(project_id),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
