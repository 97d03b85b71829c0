#  AgentBoard - Task Executor
#
#  Drives the agent through a run's tasks one at a time, yielding normalized
#  progress events as they happen and recording them best-effort.
#
#  Depends on: models/*, services/agent_session.py, services/normalizer.py,
#              services/progress.py, services/prompts.py, services/run_handle.py,
#              logging_config.py
#  Used by:    container.py, routes/execute.py

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

from agentboard.exceptions import RunCancelledError
from agentboard.logging_config import set_project_id, set_task_id
from agentboard.models.enums import EventType, LogType, ProjectMode, ProjectStatus, TaskStatus
from agentboard.models.schemas import ProgressEvent, RunRequest, RunTask
from agentboard.services.agent_session import AgentProfile, AgentSession
from agentboard.services.normalizer import EventNormalizer
from agentboard.services.progress import ProgressManager
from agentboard.services.prompts import build_prompt
from agentboard.services.run_handle import RunHandle

logger = logging.getLogger("agentboard.executor")

STOPPED_OUTPUT = "Stopped by user"


def record_metric(name: str, mode: ProjectMode, **values):
    """Emit one execution metric as a structured log record."""
    logger.info(
        "%s %s", name, " ".join(f"{k}={v}" for k, v in values.items()),
        extra={"metric": name, "mode": ProjectMode(mode).value, **values},
    )


# Log row type recorded for each streamed agent event
_AGENT_LOG_TYPES = {
    EventType.TASK_PROGRESS: LogType.PROGRESS,
    EventType.LOG: LogType.TOOL_USE,
}


class Executor:
    """Sequential run state machine.

    ``run()`` is an async generator: each task goes todo -> in_progress ->
    done|failed before the next one starts, a task failure never stops the
    run, and the stream always ends with exactly one ``done`` or ``error``
    event unless the run is cancelled, in which case emission just stops.
    """

    def __init__(self, progress: ProgressManager, agent: AgentSession):
        self._progress = progress
        self._agent = agent

    def _emit(self, project_id: str, event: ProgressEvent, log_type: LogType | None) -> ProgressEvent:
        return self._progress.push_event(project_id, event, log_type)

    async def run(self, request: RunRequest, handle: RunHandle) -> AsyncIterator[ProgressEvent]:
        project_id = request.project_id
        tasks = list(request.tasks or [])
        outcomes: dict[str, TaskStatus] = {}
        finished = False
        set_project_id(project_id or None)

        try:
            if request.mode == ProjectMode.RESEARCH:
                target = "Mode: Research"
            else:
                target = f"Workspace: {request.workspace_dir}"
            yield self._emit(project_id, ProgressEvent(type=EventType.LOG, content=target), LogType.INFO)
            self._progress.update_project_status(project_id, ProjectStatus.EXECUTING)
            logger.info("Run %s started: %d task(s), mode=%s", handle.run_id, len(tasks), request.mode.value)
            record_metric("execution.started", request.mode, task_count=len(tasks))

            for index, task in enumerate(tasks):
                handle.raise_if_cancelled()
                async with aclosing(self._run_task(request, task, index, len(tasks), handle, outcomes)) as events:
                    async for event in events:
                        yield event

            final_status = await self._final_status(project_id, outcomes)
            self._progress.update_project_status(project_id, final_status)
            finished = True
            logger.info("Run %s finished: %s", handle.run_id, final_status.value)
            yield self._emit(
                project_id, ProgressEvent(type=EventType.DONE, content="All tasks completed."), LogType.RESULT,
            )

        except RunCancelledError:
            self._record_cancellation(project_id, tasks, outcomes)
            logger.info("Run %s stopped by user", handle.run_id)

        except asyncio.CancelledError:
            self._record_cancellation(project_id, tasks, outcomes)
            logger.info("Run %s interrupted", handle.run_id)
            raise

        except GeneratorExit:
            # Consumer stopped reading before the run finished
            if not finished:
                self._record_cancellation(project_id, tasks, outcomes)
            raise

        except Exception as e:
            logger.error("Run %s failed: %s", handle.run_id, e, exc_info=True)
            message = str(e) or "Execution failed"
            self._progress.update_project_status(project_id, ProjectStatus.FAILED)
            finished = True
            yield self._emit(project_id, ProgressEvent(type=EventType.ERROR, content=message), LogType.ERROR)

        finally:
            set_task_id(None)
            set_project_id(None)

    async def _run_task(
        self,
        request: RunRequest,
        task: RunTask,
        index: int,
        total: int,
        handle: RunHandle,
        outcomes: dict[str, TaskStatus],
    ) -> AsyncIterator[ProgressEvent]:
        """Drive one task to a terminal state. Only RunCancelledError escapes."""
        project_id = request.project_id
        set_task_id(task.id)

        outcomes[task.id] = TaskStatus.IN_PROGRESS
        self._progress.update_task(project_id, task.id, status=TaskStatus.IN_PROGRESS)
        yield self._emit(
            project_id,
            ProgressEvent(type=EventType.TASK_START, task_id=task.id, content=f"Starting: {task.title}"),
            LogType.INFO,
        )

        started = time.perf_counter()
        normalizer = EventNormalizer(task.id)
        try:
            prompt = build_prompt(
                request.mode, task, request.project_name, index, total, request.workspace_dir,
            )
            cwd = request.workspace_dir if request.mode == ProjectMode.BUILD else None
            agent_events = self._agent.run(
                prompt, AgentProfile.for_mode(request.mode), cwd=cwd, handle=handle,
            )
            async with aclosing(agent_events) as agent_events:
                async for agent_event in agent_events:
                    for event in normalizer.feed(agent_event):
                        yield self._emit(project_id, event, _AGENT_LOG_TYPES.get(event.type))
        except RunCancelledError:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning("Task %s failed: %s", task.id, message)
            record_metric(
                "execution.task.failed", request.mode,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            outcomes[task.id] = TaskStatus.FAILED
            self._progress.update_task(project_id, task.id, status=TaskStatus.FAILED, output=message)
            yield self._emit(
                project_id,
                ProgressEvent(
                    type=EventType.TASK_FAILED, task_id=task.id,
                    content=f"Failed: {message}", output=message,
                ),
                LogType.ERROR,
            )
            return

        output = normalizer.output
        outcomes[task.id] = TaskStatus.DONE
        record_metric(
            "execution.task.completed", request.mode,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        self._progress.update_task(project_id, task.id, status=TaskStatus.DONE, output=output)
        yield self._emit(
            project_id,
            ProgressEvent(
                type=EventType.TASK_COMPLETE, task_id=task.id,
                output=output, content=f"Completed: {task.title}",
            ),
            LogType.RESULT,
        )

        if request.mode == ProjectMode.RESEARCH and project_id:
            try:
                await self._progress.create_research_sheet(project_id, task.id, output)
            except Exception as e:
                logger.debug("Research sheet for task %s not saved: %s", task.id, e)
            else:
                yield self._emit(
                    project_id,
                    ProgressEvent(
                        type=EventType.RESEARCH_RESULT, task_id=task.id,
                        markdown=output, content=f"Research complete: {task.title}",
                    ),
                    None,
                )

    async def _final_status(self, project_id: str, outcomes: dict[str, TaskStatus]) -> ProjectStatus:
        """Failed iff any project task ended failed.

        Persisted rows cover tasks outside this run; this run's own outcomes
        take precedence because its status writes may still be in flight.
        """
        statuses = dict(outcomes)
        if project_id:
            for row in await self._progress.list_tasks(project_id):
                statuses.setdefault(row["id"], TaskStatus(row["status"]))
        if TaskStatus.FAILED in statuses.values():
            return ProjectStatus.FAILED
        return ProjectStatus.COMPLETED

    def _record_cancellation(self, project_id: str, tasks: list[RunTask], outcomes: dict[str, TaskStatus]):
        """Fail every task of the run that had not finished, then the project."""
        self._progress.insert_log(project_id, "", LogType.INFO, "Execution stopped by user")
        for task in tasks:
            if outcomes.get(task.id) in (TaskStatus.DONE, TaskStatus.FAILED):
                continue
            outcomes[task.id] = TaskStatus.FAILED
            self._progress.update_task(project_id, task.id, status=TaskStatus.FAILED, output=STOPPED_OUTPUT)
        self._progress.update_project_status(project_id, ProjectStatus.FAILED)
        self._progress.close_subscribers(project_id)
