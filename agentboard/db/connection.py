#  AgentBoard - Database Connection
#
#  Async SQLite manager with WAL mode and transaction support.
#  The schema is inline and applied idempotently on start-up.
#
#  Depends on: (none)
#  Used by:    container.py (via DI), services/progress.py, services/runs.py, routes/*, tests

import asyncio
import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

logger = logging.getLogger("agentboard.db")


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    identifier TEXT NOT NULL,
    mode TEXT NOT NULL DEFAULT 'build',
    status TEXT NOT NULL DEFAULT 'idle',
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'todo',
    priority TEXT NOT NULL DEFAULT 'medium',
    output TEXT NOT NULL DEFAULT '',
    position INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS execution_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    task_id TEXT NOT NULL DEFAULT '',
    timestamp REAL NOT NULL,
    type TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS research_sheets (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    task_id TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id);
CREATE INDEX IF NOT EXISTS idx_tasks_position ON tasks(project_id, position);
CREATE INDEX IF NOT EXISTS idx_logs_project_ts ON execution_logs(project_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_sheets_project ON research_sheets(project_id);
"""


# ---------------------------------------------------------------------------
# Database class
# ---------------------------------------------------------------------------

class Database:
    """Async SQLite database with WAL mode.

    Uses aiosqlite which runs SQLite on a dedicated background thread,
    so statements issued from one event loop execute in submission order.
    """

    def __init__(self):
        self._conn: aiosqlite.Connection | None = None
        self._path: Path | None = None
        self._in_transaction: bool = False
        self._tx_lock: asyncio.Lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None

    async def init(self, db_path: str | Path):
        """Open or create the database and apply schema."""
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(str(self._path))
        self._conn.row_factory = sqlite3.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()

        # Recover runs interrupted by a previous shutdown
        await self._recover_interrupted()

        logger.info("Database initialized at %s", self._path)

    async def _recover_interrupted(self):
        """Fail any project left 'executing' and its 'in_progress' tasks.

        No run survives a process restart, so these rows can never reach a
        terminal state on their own.
        """
        if not self._conn:
            return
        now = time.time()
        cursor = await self._conn.execute(
            "UPDATE tasks SET status = 'failed', "
            "output = 'Server restart - task interrupted', "
            "updated_at = ? WHERE status = 'in_progress'",
            (now,),
        )
        if cursor.rowcount > 0:
            logger.info("Recovered %d interrupted task(s)", cursor.rowcount)
        await self._conn.execute(
            "UPDATE projects SET status = 'failed', updated_at = ? "
            "WHERE status = 'executing'",
            (now,),
        )
        await self._conn.commit()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call await db.init() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self):
        """Atomic read+write transaction. Rolls back on exception.

        Uses BEGIN IMMEDIATE to acquire a write lock upfront, preventing
        other writers from interleaving. An asyncio.Lock serializes
        concurrent coroutines sharing the same connection, so a second
        coroutine waits until the first transaction commits/rolls back.

        Safe to nest within the same task: if the current asyncio task
        already owns a transaction, inner calls are no-ops.
        """
        current = asyncio.current_task()
        if self._in_transaction and self._tx_owner is current:
            yield self.conn
            return

        async with self._tx_lock:
            self._in_transaction = True
            self._tx_owner = current
            try:
                await self.conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self.conn
                    await self.conn.commit()
                except Exception:
                    await self.conn.rollback()
                    raise
            finally:
                self._in_transaction = False
                self._tx_owner = None

    async def execute_write(self, sql: str, params: tuple | list = ()) -> aiosqlite.Cursor:
        """Execute a write query and commit.

        Inside a transaction() block owned by the calling task, participates
        in that transaction (no auto-commit). Writes from any other task wait
        for the open transaction to finish, then auto-commit on their own.
        """
        if self._in_transaction and self._tx_owner is asyncio.current_task():
            return await self.conn.execute(sql, params)
        async with self._tx_lock:
            cursor = await self.conn.execute(sql, params)
            await self.conn.commit()
            return cursor

    async def fetchone(self, sql: str, params: tuple | list = ()) -> sqlite3.Row | None:
        cursor = await self.conn.execute(sql, params)
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        cursor = await self.conn.execute(sql, params)
        return await cursor.fetchall()

    async def close(self):
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
