#  AgentBoard - Structured Logging Tests
#
#  Tests for JSON formatter and context variable propagation.
#
#  Depends on: agentboard/logging_config.py, agentboard/services/executor.py
#  Used by:    pytest

import json
import logging

import pytest

from agentboard.logging_config import (
    JSONFormatter,
    project_id_var,
    request_id_var,
    set_project_id,
    set_request_id,
    set_task_id,
    setup_logging,
    task_id_var,
)
from agentboard.models.schemas import RunRequest, RunTask
from agentboard.services.executor import Executor
from agentboard.services.run_handle import RunHandle
from tests.conftest import FakeAgent


def _record(msg="hello world", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test", level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )


@pytest.fixture
def agentboard_logger():
    logger = logging.getLogger("agentboard")
    saved_level = logger.level
    logger.handlers.clear()
    yield logger
    logger.handlers.clear()
    logger.setLevel(saved_level)


class TestJSONFormatter:
    def test_metric_fields_included(self):
        record = _record("execution.task.completed duration_ms=12.5")
        record.metric = "execution.task.completed"
        record.mode = "build"
        record.duration_ms = 12.5
        data = json.loads(JSONFormatter().format(record))
        assert (data["metric"], data["mode"], data["duration_ms"]) == ("execution.task.completed", "build", 12.5)
        assert "task_count" not in data

    def test_output_is_valid_json(self):
        """JSON formatter produces valid JSON."""
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "hello world"
        assert data["timestamp"].endswith("Z")

    @pytest.mark.parametrize("var,key", [
        (request_id_var, "request_id"),
        (project_id_var, "project_id"),
        (task_id_var, "task_id"),
    ])
    def test_context_var_included_when_set(self, var, key):
        token = var.set("abc123")
        try:
            data = json.loads(JSONFormatter().format(_record()))
            assert data[key] == "abc123"
        finally:
            var.reset(token)

    def test_context_vars_absent_when_not_set(self):
        set_request_id(None)
        set_project_id(None)
        set_task_id(None)
        data = json.loads(JSONFormatter().format(_record("no context")))
        assert not {"request_id", "project_id", "task_id"} & set(data)

    def test_exception_included(self):
        """Exception info appears in JSON output."""
        try:
            raise ValueError("test error")
        except ValueError:
            import sys
            exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(_record("oops", logging.ERROR, exc_info)))
        assert "ValueError" in data["exception"]


class TestSetupLogging:
    def test_json_format(self, agentboard_logger):
        setup_logging("INFO", "json")
        assert len(agentboard_logger.handlers) == 1
        assert isinstance(agentboard_logger.handlers[0].formatter, JSONFormatter)
        assert agentboard_logger.level == logging.INFO

    def test_text_format(self, agentboard_logger):
        setup_logging("DEBUG", "text")
        assert len(agentboard_logger.handlers) == 1
        assert not isinstance(agentboard_logger.handlers[0].formatter, JSONFormatter)
        assert agentboard_logger.level == logging.DEBUG

    def test_idempotent(self, agentboard_logger):
        """Calling setup_logging twice doesn't duplicate handlers."""
        setup_logging("INFO", "json")
        setup_logging("INFO", "json")
        assert len(agentboard_logger.handlers) == 1

    def test_quiets_noisy_libraries(self, agentboard_logger):
        setup_logging("DEBUG", "text")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestRunContext:
    async def test_executor_sets_and_clears_run_context(self, tmp_db, progress):
        seen = []
        agent = FakeAgent([lambda: seen.append((project_id_var.get(), task_id_var.get()))])
        request = RunRequest(
            tasks=[RunTask(id="t1", title="One")], project_id="", mode="research",
        )
        async for _ in Executor(progress, agent).run(request, RunHandle()):
            pass

        assert seen == [(None, "t1")]
        assert task_id_var.get() is None
        assert project_id_var.get() is None


class TestRequestIDMiddleware:
    async def test_request_id_header_returned(self, app_client):
        """API responses include X-Request-ID header."""
        resp = await app_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        rid = resp.headers.get("x-request-id")
        assert rid is not None
        assert len(rid) == 12  # uuid hex[:12]
