"""SQLite storage for sessions with merge-upsert semantics."""

import asyncio
import json
import logging
import sqlite3
import time
from typing import Callable, TypeVar

from ..errors import NotFoundError, PersistenceConflict
from ..memory.models import utc_now
from ..storage import Database
from .merge import merge_unit_results
from .models import Session, SessionKey, UnitResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COLUMNS = (
    "id, activity_id, user_id, session_id, user_name, summary, "
    "unit_results, generated_at, version"
)


class StaleWrite(Exception):
    """A write lost a race with another writer; the caller should reload."""

    pass


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


class SessionStore:
    """Persistent storage for sessions.

    Every write is a merge of the incoming state into the stored one
    (see ``merge_unit_results``), so replays and partial updates are safe.
    Writes are guarded by a ``version`` column and retried with
    exponential backoff when another writer got there first.
    """

    def __init__(self, db: Database, max_attempts: int = 5, backoff: float = 0.05) -> None:
        """Initialize the store on a shared database.

        Args:
            db: The database holding the sessions table.
            max_attempts: Attempts before giving up with PersistenceConflict.
            backoff: Initial delay in seconds between attempts; doubles each time.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.db = db
        self.max_attempts = max_attempts
        self.backoff = backoff

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        """Convert a database row to a Session."""
        return Session(
            id=row["id"],
            activity_id=row["activity_id"],
            user_id=row["user_id"],
            session_id=row["session_id"],
            user_name=row["user_name"],
            summary=row["summary"],
            unit_results=[UnitResult.from_dict(r) for r in json.loads(row["unit_results"])],
            generated_at=row["generated_at"],
            version=row["version"],
        )

    def find_one(self, key: SessionKey | int) -> Session | None:
        """Get a session by natural key or row id.

        Args:
            key: A SessionKey, or the integer row id.

        Returns:
            The session, or None if it doesn't exist.
        """
        conn = self.db.connection
        if isinstance(key, int):
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM sessions WHERE id = ?", (key,)
            ).fetchone()
        else:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM sessions "
                "WHERE activity_id = ? AND user_id = ? AND session_id = ?",
                (key.activity_id, key.user_id, key.session_id),
            ).fetchone()
        return self._row_to_session(row) if row else None

    def find_latest(self, session_code: str) -> Session | None:
        """Get the most recently written session with a human session code."""
        row = self.db.connection.execute(
            f"SELECT {_COLUMNS} FROM sessions WHERE session_id = ? "
            "ORDER BY generated_at DESC, id DESC LIMIT 1",
            (session_code,),
        ).fetchone()
        return self._row_to_session(row) if row else None

    def list(
        self,
        activity_id: str | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> list[Session]:
        """List sessions, most recent first, optionally filtered."""
        clauses = []
        params = []
        for column, value in (
            ("activity_id", activity_id),
            ("user_id", user_id),
            ("session_id", session_id),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)

        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        rows = self.db.connection.execute(
            f"SELECT {_COLUMNS} FROM sessions {where}ORDER BY generated_at DESC, id DESC",
            params,
        ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def _retry_delay(self, error: Exception, attempt: int, key: object) -> float:
        """Decide whether a failed attempt is retried.

        Returns:
            Seconds to wait before the next attempt.

        Raises:
            The error itself if it is not a lost race, or
            PersistenceConflict once the attempts are used up.
        """
        if isinstance(error, sqlite3.OperationalError) and not _is_lock_error(error):
            raise error
        if attempt >= self.max_attempts:
            raise PersistenceConflict(key, attempt) from error
        logger.warning(
            "Write for session %s lost a race (attempt %d/%d): %s",
            key, attempt, self.max_attempts, error,
        )
        return self.backoff * 2 ** (attempt - 1)

    def _attempt(self, work: Callable[[], T]) -> T:
        with self.db.transaction():
            return work()

    def atomic(self, work: Callable[[], T], key: object = None) -> T:
        """Run ``work`` in one transaction, retrying lost races.

        When called inside an open transaction the work simply joins it,
        and a StaleWrite propagates so the outermost caller can retry
        the whole unit of work. Backoff sleeps block the calling thread;
        coroutines use ``atomic_async`` instead.

        Args:
            work: Callable performing reads and writes through this database.
            key: Identifier reported in PersistenceConflict.

        Returns:
            Whatever ``work`` returns.

        Raises:
            PersistenceConflict: If every attempt lost a race.
        """
        if self.db.in_transaction:
            return work()

        attempt = 1
        while True:
            try:
                return self._attempt(work)
            except (StaleWrite, sqlite3.OperationalError) as e:
                time.sleep(self._retry_delay(e, attempt, key))
            attempt += 1

    async def atomic_async(self, work: Callable[[], T], key: object = None) -> T:
        """Like ``atomic``, but waits between attempts without blocking the loop."""
        if self.db.in_transaction:
            return work()

        attempt = 1
        while True:
            try:
                return self._attempt(work)
            except (StaleWrite, sqlite3.OperationalError) as e:
                await asyncio.sleep(self._retry_delay(e, attempt, key))
            attempt += 1

    def upsert(self, key: SessionKey | int, incoming: Session) -> Session:
        """Merge a session update into storage.

        Unit results are merged per ``merge_unit_results``; ``user_name``
        and ``summary`` are last-write-wins when provided; ``generated_at``
        is refreshed.

        Args:
            key: Natural key, or the row id of an existing session.
            incoming: The update. Its unit results may be partial.

        Returns:
            The stored session after the merge.

        Raises:
            NotFoundError: If ``key`` is a row id that doesn't exist.
            PersistenceConflict: If the write kept losing races.
        """
        return self.atomic(lambda: self._merge_write(key, incoming), key)

    async def upsert_async(self, key: SessionKey | int, incoming: Session) -> Session:
        """Coroutine form of ``upsert`` for callers running on an event loop."""
        return await self.atomic_async(lambda: self._merge_write(key, incoming), key)

    def _merge_write(self, key: SessionKey | int, incoming: Session) -> Session:
        existing = self.find_one(key)
        if existing is None:
            if not isinstance(key, SessionKey):
                raise NotFoundError("session", key)
            merged = Session(
                activity_id=key.activity_id,
                user_id=key.user_id,
                session_id=key.session_id,
                user_name=incoming.user_name or "",
                summary=incoming.summary or "",
                unit_results=merge_unit_results([], incoming.unit_results),
            )
        else:
            merged = existing
            merged.unit_results = merge_unit_results(
                existing.unit_results, incoming.unit_results
            )
            if incoming.user_name is not None:
                merged.user_name = incoming.user_name
            if incoming.summary is not None:
                merged.summary = incoming.summary
        merged.generated_at = utc_now()

        payload = json.dumps(
            [r.to_dict() for r in merged.unit_results], ensure_ascii=False
        )
        conn = self.db.connection

        if existing is None:
            try:
                cursor = conn.execute(
                    "INSERT INTO sessions (activity_id, user_id, session_id, user_name, "
                    "summary, unit_results, generated_at, version) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, 1)",
                    (
                        merged.activity_id,
                        merged.user_id,
                        merged.session_id,
                        merged.user_name,
                        merged.summary,
                        payload,
                        merged.generated_at,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise StaleWrite(f"session {key} was created concurrently") from e
            merged.id = cursor.lastrowid
            merged.version = 1
            return merged

        cursor = conn.execute(
            "UPDATE sessions SET user_name = ?, summary = ?, unit_results = ?, "
            "generated_at = ?, version = version + 1 WHERE id = ? AND version = ?",
            (
                merged.user_name,
                merged.summary,
                payload,
                merged.generated_at,
                existing.id,
                existing.version,
            ),
        )
        if cursor.rowcount == 0:
            raise StaleWrite(f"session {key} changed since version {existing.version}")
        merged.version = existing.version + 1
        return merged
