#  AgentBoard - Custom Exceptions
#
#  Typed exception hierarchy so routes can map business errors to HTTP
#  status codes and the executor can tell task failures from cancellation.
#
#  Depends on: (none)
#  Used by:    services/*, routes/*, app.py

class AgentBoardError(Exception):
    """Base exception for all AgentBoard business logic errors."""


class NotFoundError(AgentBoardError):
    """Resource (project, task) does not exist."""


class InvalidStateError(AgentBoardError):
    """Operation not allowed in the current resource state."""


class AgentError(AgentBoardError):
    """The agent run for a single task ended in an error."""


class ToolNotAllowedError(AgentError):
    """The agent invoked a tool outside the active mode's allow-list."""

    def __init__(self, tool: str, allowed: tuple[str, ...]):
        self.tool = tool
        self.allowed = allowed
        super().__init__(f"Tool '{tool}' is not permitted (allowed: {', '.join(allowed)})")


class RunCancelledError(AgentBoardError):
    """Cancellation was requested for the run and observed at a suspension point."""
