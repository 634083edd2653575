"""SQLite publication ledger: one row per (event, handler), completed_at marks delivery."""

import logging
import time
from typing import Callable

import aiosqlite

from countryflow.database import Database
from countryflow.errors import LedgerError
from countryflow.events.models import PublicationRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS event_publication (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type          TEXT    NOT NULL,
    serialized_payload  TEXT    NOT NULL,
    correlation_key     TEXT    NOT NULL,
    handler_id          TEXT    NOT NULL,
    published_at        REAL    NOT NULL,
    completed_at        REAL,
    attempts            INTEGER NOT NULL DEFAULT 0,
    last_error          TEXT
);

CREATE INDEX IF NOT EXISTS idx_ep_incomplete ON event_publication(completed_at, published_at);
CREATE INDEX IF NOT EXISTS idx_ep_correlation ON event_publication(correlation_key);
"""

_COLUMNS = (
    "id, event_type, serialized_payload, correlation_key, handler_id, "
    "published_at, completed_at, attempts, last_error"
)


def _row_to_record(row: aiosqlite.Row) -> PublicationRecord:
    return PublicationRecord(
        id=row["id"],
        event_type=row["event_type"],
        serialized_payload=row["serialized_payload"],
        correlation_key=row["correlation_key"],
        handler_id=row["handler_id"],
        published_at=row["published_at"],
        completed_at=row["completed_at"],
        attempts=row["attempts"],
        last_error=row["last_error"],
    )


class PublicationLedger:
    """Durable record of every event publication and whether its handler completed.

    Writes join the caller's transaction when there is one, so append() is
    atomic with the business write that produced the event.
    """

    def __init__(self, db: Database, clock: Clock = time.time) -> None:
        self._db = db
        self._clock = clock

    async def initialize(self) -> None:
        await self._db.execute_script(_SCHEMA)

    def now(self) -> float:
        return self._clock()

    async def append(self, record: PublicationRecord) -> int:
        """Insert an incomplete record and return its id. Errors propagate and abort the transaction."""
        async with self._db.transaction() as conn:
            try:
                cursor = await conn.execute(
                    """
                    INSERT INTO event_publication
                        (event_type, serialized_payload, correlation_key, handler_id, published_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        record.event_type,
                        record.serialized_payload,
                        record.correlation_key,
                        record.handler_id,
                        record.published_at,
                    ),
                )
            except aiosqlite.Error as e:
                raise LedgerError(f"Failed to append publication for {record.event_type}") from e
        record_id = cursor.lastrowid
        if not record_id:
            raise LedgerError(f"No id assigned to publication for {record.event_type}")
        return record_id

    async def mark_complete(self, record_id: int, completed_at: float) -> bool:
        """Set completed_at if still NULL. Returns False when already complete (no-op)."""
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE event_publication SET completed_at = ? "
                "WHERE id = ? AND completed_at IS NULL",
                (completed_at, record_id),
            )
        return (cursor.rowcount or 0) > 0

    async def record_failure(self, record_id: int, error: str) -> None:
        """Increment attempts and store the last error. Leaves completed_at untouched."""
        async with self._db.transaction() as conn:
            await conn.execute(
                "UPDATE event_publication SET attempts = attempts + 1, last_error = ? "
                "WHERE id = ? AND completed_at IS NULL",
                (error, record_id),
            )

    async def get(self, record_id: int) -> PublicationRecord | None:
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM event_publication WHERE id = ?",
                (record_id,),
            )
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def find_incomplete_older_than(self, seconds: float) -> list[PublicationRecord]:
        """Incomplete records with now - published_at > seconds, oldest first."""
        threshold = self._clock() - seconds
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT {_COLUMNS} FROM event_publication
                WHERE completed_at IS NULL AND published_at < ?
                ORDER BY published_at, id
                """,
                (threshold,),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def find_incomplete(self) -> list[PublicationRecord]:
        """All incomplete records regardless of age, oldest first. Used for restart recovery."""
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT {_COLUMNS} FROM event_publication
                WHERE completed_at IS NULL
                ORDER BY published_at, id
                """
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def find_by_correlation_key(self, correlation_key: str) -> list[PublicationRecord]:
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT {_COLUMNS} FROM event_publication
                WHERE correlation_key = ?
                ORDER BY published_at, id
                """,
                (correlation_key,),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def purge(self, record_id: int) -> bool:
        """Operator action: delete one incomplete record so the sweep stops retrying it."""
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM event_publication WHERE id = ? AND completed_at IS NULL",
                (record_id,),
            )
        purged = (cursor.rowcount or 0) > 0
        if purged:
            logger.warning("Purged incomplete publication %s", record_id)
        return purged

    async def delete_completed_older_than(self, seconds: float) -> int:
        """Retention: delete completed records finished more than seconds ago. Return count."""
        threshold = self._clock() - seconds
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM event_publication "
                "WHERE completed_at IS NOT NULL AND completed_at < ?",
                (threshold,),
            )
        return cursor.rowcount or 0
