"""Shared SQLite database: one connection, serialized units of work, after-commit hooks."""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

import aiosqlite

logger = logging.getLogger(__name__)

AfterCommitHook = Callable[[], Awaitable[None]]


@dataclass
class _Transaction:
    conn: aiosqlite.Connection
    after_commit: list[AfterCommitHook] = field(default_factory=list)


_current: ContextVar[_Transaction | None] = ContextVar("countryflow_tx", default=None)


class Database:
    """SQLite database shared by the ledger and the entity repositories.

    All business writes and ledger appends go through transaction(), so a
    country row and the publication records it produced commit or roll back
    together. The active transaction is tracked per task in a ContextVar:
    repository and ledger calls made inside it join it instead of waiting on
    the lock.
    """

    def __init__(self, db_path: Path, busy_timeout: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def _ensure_conn(self) -> aiosqlite.Connection:
        """Open the shared connection on first use. Caller holds self._lock."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            # isolation_level=None: transactions are opened explicitly with BEGIN IMMEDIATE
            self._conn = await aiosqlite.connect(str(self._db_path), isolation_level=None)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
            await self._conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
        return self._conn

    async def execute_script(self, script: str) -> None:
        """Run a schema script (CREATE TABLE IF NOT EXISTS ...)."""
        async with self.connection() as conn:
            await conn.executescript(script)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def in_transaction(self) -> bool:
        return _current.get() is not None

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Connection for reads: the ambient transaction's, or the shared one under the lock."""
        tx = _current.get()
        if tx is not None:
            yield tx.conn
            return
        async with self._lock:
            conn = await self._ensure_conn()
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a unit of work, or join the one already active in this task.

        On success the transaction commits, the lock is released and the
        registered after-commit hooks run in order. Every hook runs; the first
        exception among them is then raised to the caller, whose data is
        already committed at that point.
        """
        tx = _current.get()
        if tx is not None:
            yield tx.conn
            return

        async with self._lock:
            conn = await self._ensure_conn()
            tx = _Transaction(conn)
            token = _current.set(tx)
            try:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                    await conn.commit()
                except BaseException:
                    await conn.rollback()
                    raise
            finally:
                _current.reset(token)

        first_error: Exception | None = None
        for hook in tx.after_commit:
            try:
                await hook()
            except Exception as e:
                if first_error is None:
                    first_error = e
                else:
                    logger.error("After-commit hook failed: %s", e, exc_info=e)
        if first_error is not None:
            raise first_error

    def after_commit(self, hook: AfterCommitHook) -> None:
        """Run hook once the current transaction commits. Dropped on rollback."""
        tx = _current.get()
        if tx is None:
            raise RuntimeError("after_commit() requires an active transaction")
        tx.after_commit.append(hook)
