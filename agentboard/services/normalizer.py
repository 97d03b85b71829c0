#  AgentBoard - Event Normalizer
#
#  Maps agent events for one task onto the public progress vocabulary and
#  accumulates the task's final output.
#
#  Depends on: config.py, models/enums.py, models/schemas.py, services/agent_session.py
#  Used by:    services/executor.py

from agentboard.config import FALLBACK_OUTPUT, PREVIEW_CHARS
from agentboard.models.enums import EventType
from agentboard.models.schemas import ProgressEvent
from agentboard.services.agent_session import AgentEvent, AgentResult, AgentText, AgentToolUse


class EventNormalizer:
    """Per-task accumulator. Feed agent events in order, then read ``output``.

    Text appends to the output and emits a truncated preview; tool calls emit
    a log line; a result payload replaces everything accumulated so far.
    """

    def __init__(
        self,
        task_id: str,
        preview_chars: int = PREVIEW_CHARS,
        fallback: str = FALLBACK_OUTPUT,
    ):
        self.task_id = task_id
        self._preview_chars = preview_chars
        self._fallback = fallback
        self._parts: list[str] = []

    def feed(self, event: AgentEvent) -> list[ProgressEvent]:
        if isinstance(event, AgentText):
            self._parts.append(event.text)
            return [ProgressEvent(
                type=EventType.TASK_PROGRESS,
                task_id=self.task_id,
                content=event.text[:self._preview_chars],
            )]
        if isinstance(event, AgentToolUse):
            return [ProgressEvent(
                type=EventType.LOG,
                task_id=self.task_id,
                content=f"Using tool: {event.name}",
            )]
        if isinstance(event, AgentResult) and event.result:
            self._parts = [event.result]
        return []

    @property
    def output(self) -> str:
        return "".join(self._parts) or self._fallback
