#  AgentBoard - Test Fixtures
#
#  Shared fixtures and seed helpers for the test suite.
#  Uses DI container overrides instead of monkey-patching singletons.
#
#  Depends on: agentboard/db/connection.py, agentboard/container.py, agentboard/app.py
#  Used by:    all test files

import time
from unittest.mock import AsyncMock, patch

import pytest
from dependency_injector import providers


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

async def create_test_project(
    db, project_id="proj1", name="Test Project", *,
    identifier="TP", mode="build", status="idle", created_at=None,
):
    now = created_at or time.time()
    await db.execute_write(
        "INSERT INTO projects (id, name, description, identifier, mode, status, created_at, updated_at) "
        "VALUES (?, ?, '', ?, ?, ?, ?, ?)",
        (project_id, name, identifier, mode, status, now, now),
    )


async def create_test_task(
    db, task_id, project_id="proj1", *,
    title=None, description="", status="todo", output="", position=0,
):
    now = time.time()
    await db.execute_write(
        "INSERT INTO tasks (id, project_id, title, description, status, priority, output, "
        "position, created_at, updated_at) VALUES (?, ?, ?, ?, ?, 'medium', ?, ?, ?, ?)",
        (task_id, project_id, title or f"Task {task_id}", description, status, output, position, now, now),
    )


# ---------------------------------------------------------------------------
# Scripted agent
# ---------------------------------------------------------------------------

class FakeAgent:
    """Stands in for AgentSession. One script per task invocation, in order.

    A script is a list of steps: agent events are yielded, exceptions are
    raised, and plain callables are invoked (e.g. to cancel the run mid-task).
    The run handle is checked before every step, like the real session.
    """

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.calls: list[dict] = []

    async def run(self, instruction, profile, *, cwd=None, handle=None):
        index = len(self.calls)
        self.calls.append({"instruction": instruction, "profile": profile, "cwd": cwd})
        script = self.scripts[index] if index < len(self.scripts) else []
        for step in script:
            if handle:
                handle.raise_if_cancelled()
            if isinstance(step, BaseException):
                raise step
            if callable(step):
                step()
                continue
            yield step


# ---------------------------------------------------------------------------
# Database fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def tmp_db(tmp_path):
    """Create a fresh async database with schema applied."""
    from agentboard.db.connection import Database

    test_db = Database()
    db_path = tmp_path / "test.db"
    await test_db.init(str(db_path))

    yield test_db

    await test_db.close()


@pytest.fixture
async def progress(tmp_db):
    from agentboard.services.progress import ProgressManager

    pm = ProgressManager(db=tmp_db)
    yield pm
    await pm.drain()


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def workspace_root(tmp_path):
    return tmp_path / "workspaces"


# ---------------------------------------------------------------------------
# FastAPI TestClient fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def app_client(tmp_db, progress, fake_agent, workspace_root):
    """httpx client against the app with a fresh database. Uses DI container overrides.

    Uses explicit try/finally with reset_override() instead of context managers
    to ensure DI state is fully cleaned up between tests.
    """
    from httpx import ASGITransport, AsyncClient
    from agentboard.app import app, container
    from agentboard.services.executor import Executor
    from agentboard.services.runs import RunService

    runs = RunService(db=tmp_db, workspace_root=workspace_root)
    executor = Executor(progress=progress, agent=fake_agent)

    init_patcher = patch.object(tmp_db, "init", new_callable=AsyncMock)

    container.db.override(providers.Object(tmp_db))
    container.progress.override(providers.Object(progress))
    container.agent.override(providers.Object(fake_agent))
    container.runs.override(providers.Object(runs))
    container.executor.override(providers.Object(executor))
    init_patcher.start()

    # Reset rate limiter storage so tests don't hit limits from prior tests
    from agentboard.rate_limit import limiter as _limiter
    _limiter.reset()

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        init_patcher.stop()
        container.db.reset_override()
        container.progress.reset_override()
        container.agent.reset_override()
        container.runs.reset_override()
        container.executor.reset_override()
