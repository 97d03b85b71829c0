#  AgentBoard - Enums
#
#  Status and type enumerations used across the system.
#
#  Depends on: (none)
#  Used by:    models/schemas.py, services/*, routes/*

from enum import Enum


class ProjectMode(str, Enum):
    BUILD = "build"
    RESEARCH = "research"


class ProjectStatus(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


class TaskPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class LogType(str, Enum):
    INFO = "info"
    TOOL_USE = "tool_use"
    RESULT = "result"
    ERROR = "error"
    PROGRESS = "progress"


class EventType(str, Enum):
    TASK_START = "task_start"
    TASK_PROGRESS = "task_progress"
    TASK_COMPLETE = "task_complete"
    TASK_FAILED = "task_failed"
    LOG = "log"
    RESEARCH_RESULT = "research_result"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.ERROR})
