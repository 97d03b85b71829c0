#  AgentBoard - App Lifespan Tests
#
#  Tests for FastAPI app lifespan (startup/shutdown), exception handlers
#  and RequestIDMiddleware.
#
#  Depends on: agentboard/app.py
#  Used by:    pytest

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from dependency_injector import providers
from fastapi import Request
from slowapi.errors import RateLimitExceeded

from agentboard.app import (
    agentboard_handler,
    app,
    container,
    invalid_state_handler,
    lifespan,
    not_found_handler,
    rate_limit_handler,
)
from agentboard.config import ConfigError, DB_PATH
from agentboard.exceptions import AgentBoardError, InvalidStateError, NotFoundError


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

class TestExceptionHandlers:
    async def test_rate_limit_returns_429(self):
        request = MagicMock(spec=Request)
        mock_limit = MagicMock()
        mock_limit.limit = "10 per minute"
        exc = RateLimitExceeded(mock_limit)

        response = await rate_limit_handler(request, exc)
        assert response.status_code == 429
        assert b"Rate limit exceeded" in response.body

    @pytest.mark.parametrize("handler,exc,status", [
        (not_found_handler, NotFoundError("Project x not found"), 404),
        (invalid_state_handler, InvalidStateError("Project x is already executing"), 409),
        (agentboard_handler, AgentBoardError("bad request"), 400),
    ])
    async def test_business_errors_map_to_status(self, handler, exc, status):
        response = await handler(MagicMock(spec=Request), exc)
        assert response.status_code == status
        assert str(exc).encode() in response.body


# ---------------------------------------------------------------------------
# Lifespan startup/shutdown
# ---------------------------------------------------------------------------

@pytest.fixture
def lifecycle_mocks():
    calls = []
    db = MagicMock()
    db.init = AsyncMock(side_effect=lambda path: calls.append(("init", path)))
    db.close = AsyncMock(side_effect=lambda: calls.append("close"))
    progress = MagicMock()
    progress.drain = AsyncMock(side_effect=lambda: calls.append("drain"))

    container.db.override(providers.Object(db))
    container.progress.override(providers.Object(progress))
    try:
        yield calls
    finally:
        container.db.reset_override()
        container.progress.reset_override()


class TestLifespan:
    async def test_startup_and_ordered_shutdown(self, lifecycle_mocks):
        with patch("agentboard.app.validate_config") as validate:
            async with lifespan(app):
                assert lifecycle_mocks == [("init", DB_PATH)]
        validate.assert_called_once()
        # Pending progress writes flush before the connection closes
        assert lifecycle_mocks == [("init", DB_PATH), "drain", "close"]

    async def test_invalid_config_aborts_startup(self, lifecycle_mocks):
        with patch("agentboard.app.validate_config", side_effect=ConfigError("bad port")):
            with pytest.raises(ConfigError):
                async with lifespan(app):
                    pass
        assert lifecycle_mocks == []


class TestRequestID:
    async def test_request_id_unique_per_request(self, app_client):
        resp1 = await app_client.get("/api/health")
        resp2 = await app_client.get("/api/health")
        assert resp1.headers["x-request-id"] != resp2.headers["x-request-id"]
