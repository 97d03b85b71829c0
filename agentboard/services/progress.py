#  AgentBoard - Progress Manager
#
#  Best-effort persistence of run progress (execution logs, task and project
#  status) and SSE broadcast to project observers.
#
#  Depends on: db/connection.py, models/enums.py, models/schemas.py
#  Used by:    container.py, routes/logs.py, routes/events.py, services/executor.py

import asyncio
import logging
import time
import uuid

from agentboard.models.enums import TERMINAL_EVENTS, LogType, ProjectStatus
from agentboard.models.schemas import ProgressEvent

logger = logging.getLogger("agentboard.progress")

# Task columns the executor is allowed to write during a run
_TASK_FIELDS = ("status", "output")

# Queued to observers when a run stops without a terminal event
_CLOSE = object()


class ProgressManager:
    """Persistence collaborator for runs, plus live fan-out to observers.

    Log rows and status updates are fire-and-forget: each write runs as a
    detached task whose failure is logged at DEBUG and dropped. Reads are
    awaited normally. All calls with an empty project id are no-ops so
    ad-hoc runs can stream without a persisted project.
    """

    def __init__(self, db):
        self._db = db
        self._pending: set[asyncio.Task] = set()
        self._last_ts = 0.0
        # project_id -> list of subscriber queues
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    # ------------------------------------------------------------------
    # Fire-and-forget writes
    # ------------------------------------------------------------------

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Discarded failed persistence write: %s", exc)

    def _next_timestamp(self) -> float:
        # Strictly increasing so stored order equals emission order
        now = time.time()
        if now <= self._last_ts:
            now = self._last_ts + 1e-6
        self._last_ts = now
        return now

    def insert_log(self, project_id: str, task_id: str, log_type: LogType, content: str):
        if not project_id:
            return
        self._spawn(self._db.execute_write(
            "INSERT INTO execution_logs (project_id, task_id, timestamp, type, content) "
            "VALUES (?, ?, ?, ?, ?)",
            (project_id, task_id or "", self._next_timestamp(), LogType(log_type).value, content),
        ))

    def update_task(self, project_id: str, task_id: str, **fields):
        if not project_id:
            return
        unknown = set(fields) - set(_TASK_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update task field(s): {', '.join(sorted(unknown))}")
        assignments = [f"{name} = ?" for name in fields]
        params = [getattr(value, "value", value) for value in fields.values()]
        self._spawn(self._db.execute_write(
            f"UPDATE tasks SET {', '.join(assignments)}, updated_at = ? WHERE id = ?",
            (*params, time.time(), task_id),
        ))

    def update_project_status(self, project_id: str, status: ProjectStatus):
        if not project_id:
            return
        self._spawn(self._db.execute_write(
            "UPDATE projects SET status = ?, updated_at = ? WHERE id = ?",
            (ProjectStatus(status).value, time.time(), project_id),
        ))

    def push_event(self, project_id: str, event: ProgressEvent, log_type: LogType | None = None) -> ProgressEvent:
        """Persist ``event`` as a log row (when ``log_type`` is given) and broadcast it."""
        if not project_id:
            return event
        if log_type is not None:
            self.insert_log(project_id, event.task_id or "", log_type, event.content or "")

        for queue in self._subscribers.get(project_id, []):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                pass  # Drop if subscriber is slow
        return event

    def close_subscribers(self, project_id: str):
        """End every observer stream of a project whose run stopped silently."""
        for queue in self._subscribers.get(project_id, []):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(_CLOSE)

    async def drain(self):
        """Wait for every outstanding write, including ones issued meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Awaited reads / writes
    # ------------------------------------------------------------------

    async def list_tasks(self, project_id: str) -> list:
        return await self._db.fetchall(
            "SELECT * FROM tasks WHERE project_id = ? ORDER BY position ASC, created_at ASC",
            (project_id,),
        )

    async def add_log(self, project_id: str, task_id: str, log_type: LogType, content: str) -> int:
        cursor = await self._db.execute_write(
            "INSERT INTO execution_logs (project_id, task_id, timestamp, type, content) "
            "VALUES (?, ?, ?, ?, ?)",
            (project_id, task_id or "", self._next_timestamp(), LogType(log_type).value, content),
        )
        return cursor.lastrowid

    async def get_logs(self, project_id: str, task_id: str | None = None) -> list[dict]:
        if task_id is not None:
            rows = await self._db.fetchall(
                "SELECT * FROM execution_logs WHERE project_id = ? AND task_id = ? "
                "ORDER BY timestamp ASC, id ASC",
                (project_id, task_id),
            )
        else:
            rows = await self._db.fetchall(
                "SELECT * FROM execution_logs WHERE project_id = ? "
                "ORDER BY timestamp ASC, id ASC",
                (project_id,),
            )
        return [dict(r) for r in rows]

    async def create_research_sheet(self, project_id: str, task_id: str, content: str) -> str:
        sheet_id = uuid.uuid4().hex[:12]
        now = time.time()
        await self._db.execute_write(
            "INSERT INTO research_sheets (id, project_id, task_id, content, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (sheet_id, project_id, task_id, content, now, now),
        )
        return sheet_id

    async def get_research_sheets(self, project_id: str) -> list[dict]:
        rows = await self._db.fetchall(
            "SELECT * FROM research_sheets WHERE project_id = ? ORDER BY created_at ASC, rowid ASC",
            (project_id,),
        )
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    async def subscribe(self, project_id: str, keepalive: float = 30.0):
        """Yield SSE-formatted strings for a project's live run. Used by events endpoint.

        Ends after a done or error event, or when the run is stopped.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        self._subscribers.setdefault(project_id, []).append(queue)
        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=keepalive)
                    if event is _CLOSE:
                        break
                    yield f"data: {event.to_json()}\n\n"
                    if event.type in TERMINAL_EVENTS:
                        break
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            subs = self._subscribers.get(project_id, [])
            if queue in subs:
                subs.remove(queue)
            if not subs and project_id in self._subscribers:
                del self._subscribers[project_id]
