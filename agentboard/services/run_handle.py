#  AgentBoard - Run Handle
#
#  Explicit cancellation token for a single run. Created by the caller that
#  starts the run, cancelled by the streaming transport, and checked by the
#  agent session at every consumed agent message.
#
#  Depends on: exceptions.py
#  Used by:    services/runs.py, services/agent_session.py, services/executor.py,
#              services/streaming.py

import asyncio
import uuid

from agentboard.exceptions import RunCancelledError


class RunHandle:
    """Cooperative cancellation signal for one run of one project."""

    def __init__(self, project_id: str = ""):
        self.project_id = project_id
        self.run_id = uuid.uuid4().hex[:12]
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        """Request cancellation. Idempotent."""
        self._cancelled.set()

    def raise_if_cancelled(self):
        if self._cancelled.is_set():
            raise RunCancelledError(f"Run {self.run_id} cancelled")
