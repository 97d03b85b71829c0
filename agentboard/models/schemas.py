#  AgentBoard - Pydantic Schemas
#
#  Request/response models for the REST API and the progress stream.
#
#  Depends on: models/enums.py
#  Used by:    routes/*, services/*

from pydantic import BaseModel, ConfigDict, Field

from agentboard.models.enums import (
    EventType,
    LogType,
    ProjectMode,
    ProjectStatus,
    TaskPriority,
    TaskStatus,
)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=50_000)
    identifier: str | None = Field(default=None, min_length=1, max_length=32)
    mode: ProjectMode = ProjectMode.BUILD


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=50_000)
    identifier: str | None = Field(default=None, min_length=1, max_length=32)
    mode: ProjectMode | None = None
    status: ProjectStatus | None = None


class TaskOut(BaseModel):
    id: str
    project_id: str
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    output: str
    position: int = 0
    created_at: float
    updated_at: float


class ProjectOut(BaseModel):
    id: str
    name: str
    description: str
    identifier: str
    mode: ProjectMode
    status: ProjectStatus
    created_at: float
    tasks: list[TaskOut] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=50_000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=50_000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    output: str | None = None


# ---------------------------------------------------------------------------
# Execution logs & research sheets
# ---------------------------------------------------------------------------

class LogCreate(BaseModel):
    task_id: str = Field(default="", alias="taskId")
    type: LogType
    content: str = ""

    model_config = ConfigDict(populate_by_name=True)


class LogOut(BaseModel):
    id: int
    project_id: str
    task_id: str
    timestamp: float
    type: LogType
    content: str


class ResearchSheetOut(BaseModel):
    id: str
    project_id: str
    task_id: str
    content: str
    created_at: float
    updated_at: float


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

class RunTask(BaseModel):
    id: str
    title: str
    description: str = ""


class RunRequest(BaseModel):
    """Inbound execute request. Also the executor's view of a prepared run.

    Accepts the camelCase keys sent by the board UI as well as snake_case.
    When ``tasks`` is omitted the project's non-done tasks are run in board order.
    """

    tasks: list[RunTask] | None = None
    project_id: str = Field(default="", alias="projectId")
    project_name: str = Field(default="", alias="projectName")
    project_identifier: str = Field(default="", alias="projectIdentifier")
    mode: ProjectMode = ProjectMode.BUILD
    workspace_dir: str | None = Field(default=None, alias="workspaceDir")

    model_config = ConfigDict(populate_by_name=True)


class ProgressEvent(BaseModel):
    """One normalized unit of run progress, as sent on the stream."""

    type: EventType
    task_id: str | None = Field(default=None, alias="taskId")
    content: str | None = None
    output: str | None = None
    markdown: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class HealthOut(BaseModel):
    status: str = "ok"
