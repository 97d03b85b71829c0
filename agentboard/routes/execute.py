#  AgentBoard - Execute Route
#
#  Starts a run and streams its progress events back as SSE on the same
#  response. Closing the response cancels the run.
#
#  Depends on: container.py, rate_limit.py, services/runs.py,
#              services/executor.py, services/streaming.py
#  Used by:    app.py

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from agentboard.config import EXECUTE_RATE_LIMIT
from agentboard.container import Container
from agentboard.models.schemas import RunRequest
from agentboard.rate_limit import limiter
from agentboard.services.executor import Executor
from agentboard.services.runs import RunService
from agentboard.services.streaming import SSE_HEADERS, stream_run

router = APIRouter(tags=["execute"])


@router.post("/execute")
@limiter.limit(EXECUTE_RATE_LIMIT)
@inject
async def execute(
    request: Request,
    body: RunRequest,
    runs: RunService = Depends(Provide[Container.runs]),
    executor: Executor = Depends(Provide[Container.executor]),
):
    """Run the request's tasks in order, streaming progress as it happens.

    404 for an unknown project or task, 409 while the project already has
    an active run. Both are raised before the stream opens.
    """
    prepared, handle = await runs.prepare(body)
    return StreamingResponse(
        stream_run(executor.run(prepared, handle), handle, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
