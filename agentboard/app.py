#  AgentBoard - FastAPI Application
#
#  Main app setup: lifespan, CORS, router includes.
#  Creates the DI container and manages service lifecycle.
#
#  Depends on: config.py, container.py, routes/*.py
#  Used by:    run.py

import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from agentboard.config import CORS_ORIGINS, DB_PATH, validate_config
from agentboard.container import Container
from agentboard.exceptions import AgentBoardError, InvalidStateError, NotFoundError
from agentboard.logging_config import set_request_id
from agentboard.rate_limit import limiter
from agentboard.routes.events import router as events_router
from agentboard.routes.execute import router as execute_router
from agentboard.routes.health import router as health_router
from agentboard.routes.logs import router as logs_router
from agentboard.routes.projects import router as projects_router
from agentboard.routes.tasks import router as tasks_router

logger = logging.getLogger("agentboard.app")

# Create and wire the DI container
container = Container()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle.

    Uses AsyncExitStack so that if any startup step fails, all previously
    initialized resources are cleaned up in reverse order.
    """
    logger.info("AgentBoard starting...")

    # Validate critical config before anything else
    validate_config()

    db = container.db()
    progress = container.progress()

    async with AsyncExitStack() as stack:
        await db.init(DB_PATH)
        stack.push_async_callback(db.close)

        # Flush best-effort progress writes before the connection closes
        stack.push_async_callback(progress.drain)

        yield

    logger.info("AgentBoard shutting down")


app = FastAPI(
    title="AgentBoard",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
    )


# Global exception handlers for business errors raised before a stream opens
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(AgentBoardError)
async def agentboard_handler(request: Request, exc: AgentBoardError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Request ID tracing
class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = uuid.uuid4().hex[:12]
        set_request_id(rid)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            return response
        finally:
            set_request_id(None)

app.add_middleware(RequestIDMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(health_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
app.include_router(logs_router, prefix="/api")
app.include_router(execute_router, prefix="/api")
app.include_router(events_router, prefix="/api")
