#  AgentBoard - Agent Session Adapter
#
#  Runs one task through the Claude Agent SDK and decodes its messages into
#  a closed set of agent events. Mode decides the tool allow-list and the
#  turn limit; tools outside the allow-list fail the task.
#
#  Depends on: config.py, exceptions.py, models/enums.py, services/run_handle.py
#  Used by:    container.py, services/executor.py, services/normalizer.py

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    TextBlock,
    ToolUseBlock,
    query,
)

from agentboard.config import (
    AGENT_MODEL,
    AGENT_PERMISSION_MODE,
    BUILD_ALLOWED_TOOLS,
    BUILD_MAX_TURNS,
    RESEARCH_ALLOWED_TOOLS,
    RESEARCH_MAX_TURNS,
)
from agentboard.exceptions import AgentError, ToolNotAllowedError
from agentboard.models.enums import ProjectMode
from agentboard.services.run_handle import RunHandle

logger = logging.getLogger("agentboard.agent")

# Result subtype the SDK reports when the turn limit ends the session
MAX_TURNS_SUBTYPE = "error_max_turns"


# ---------------------------------------------------------------------------
# Agent events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AgentText:
    text: str


@dataclass(frozen=True)
class AgentToolUse:
    name: str
    tool_input: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AgentResult:
    """Final message of a session. ``result`` overrides accumulated text when set."""

    result: str | None
    subtype: str = "success"
    is_error: bool = False
    num_turns: int = 0

    @property
    def hit_turn_limit(self) -> bool:
        return self.subtype == MAX_TURNS_SUBTYPE


AgentEvent = AgentText | AgentToolUse | AgentResult


def decode_message(message) -> list[AgentEvent]:
    """Translate one SDK message into zero or more agent events.

    System and user messages, thinking blocks and tool results carry nothing
    the board reports, so they decode to nothing.
    """
    if isinstance(message, AssistantMessage):
        events: list[AgentEvent] = []
        for block in message.content or []:
            if isinstance(block, TextBlock):
                if block.text:
                    events.append(AgentText(block.text))
            elif isinstance(block, ToolUseBlock):
                events.append(AgentToolUse(block.name, dict(block.input or {})))
        return events
    if isinstance(message, ResultMessage):
        result = message.result if isinstance(message.result, str) else None
        return [AgentResult(
            result=result or None,
            subtype=message.subtype,
            is_error=bool(message.is_error),
            num_turns=message.num_turns,
        )]
    return []


# ---------------------------------------------------------------------------
# Capabilities & limits
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AgentProfile:
    allowed_tools: tuple[str, ...]
    max_turns: int

    @classmethod
    def for_mode(cls, mode: ProjectMode) -> "AgentProfile":
        if mode == ProjectMode.RESEARCH:
            return cls(tuple(RESEARCH_ALLOWED_TOOLS), RESEARCH_MAX_TURNS)
        return cls(tuple(BUILD_ALLOWED_TOOLS), BUILD_MAX_TURNS)

    def permits(self, tool: str) -> bool:
        return tool in self.allowed_tools


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class AgentSession:
    """Uniform lazy event stream over the Claude Agent SDK."""

    def __init__(
        self,
        model: str = AGENT_MODEL,
        permission_mode: str = AGENT_PERMISSION_MODE,
        query_fn: Callable | None = None,
    ):
        self._model = model
        self._permission_mode = permission_mode
        self._query = query_fn or query

    def build_options(self, profile: AgentProfile, cwd: str | None = None) -> ClaudeAgentOptions:
        options = ClaudeAgentOptions(
            tools=list(profile.allowed_tools),
            allowed_tools=list(profile.allowed_tools),
            permission_mode=self._permission_mode,
            max_turns=profile.max_turns,
            model=self._model,
        )
        if cwd:
            options.cwd = cwd
        return options

    async def run(
        self,
        instruction: str,
        profile: AgentProfile,
        *,
        cwd: str | None = None,
        handle: RunHandle | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """Yield agent events until the session concludes.

        Raises RunCancelledError when the handle is cancelled (checked before
        the session starts and after every message), ToolNotAllowedError for a
        tool outside the profile, and AgentError for an error result that is
        not the turn limit. Hitting the turn limit ends the stream normally.
        """
        if handle:
            handle.raise_if_cancelled()

        options = self.build_options(profile, cwd)
        async with aclosing(self._query(prompt=instruction, options=options)) as messages:
            async for message in messages:
                if handle:
                    handle.raise_if_cancelled()
                for event in decode_message(message):
                    if isinstance(event, AgentToolUse) and not profile.permits(event.name):
                        raise ToolNotAllowedError(event.name, profile.allowed_tools)
                    if isinstance(event, AgentResult) and event.is_error:
                        if event.hit_turn_limit:
                            logger.info(
                                "Agent stopped at the %d-turn limit; keeping partial result",
                                profile.max_turns,
                            )
                        else:
                            raise AgentError(event.result or f"Agent run ended with '{event.subtype}'")
                    yield event
