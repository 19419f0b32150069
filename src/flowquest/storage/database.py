"""SQLite database holding sessions and dynamic memories."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class Database:
    """Shared SQLite connection with nestable transactions.

    Both stores write through the same connection so that a turn's memory
    writes and its session update can be committed together. The outermost
    ``transaction()`` opens an IMMEDIATE transaction (taking the write lock
    up front); nested calls join it.
    """

    def __init__(self, db_path: Path, timeout: float = 5.0) -> None:
        """Initialize the database with a file path.

        Args:
            db_path: Path to the SQLite database file.
            timeout: Seconds to wait for a competing writer's lock.
        """
        self.db_path = db_path
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._depth = 0

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode; transactions are opened explicitly.
            self._conn = sqlite3.connect(
                self.db_path, timeout=self.timeout, isolation_level=None
            )
            self._conn.row_factory = sqlite3.Row
        return self._conn

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection."""
        return self._get_connection()

    @property
    def in_transaction(self) -> bool:
        """True while a transaction() block is open."""
        return self._depth > 0

    def init_db(self) -> None:
        """Create the tables if they don't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                seq                 INTEGER PRIMARY KEY AUTOINCREMENT,
                id                  TEXT NOT NULL UNIQUE,
                agent_id            TEXT NOT NULL,
                created_by_user_id  TEXT NOT NULL,
                activity_id         TEXT,
                session_id          TEXT,
                tier                TEXT NOT NULL CHECK (tier IN ('hot', 'cold')),
                content             TEXT NOT NULL,
                tags                TEXT NOT NULL DEFAULT '[]',
                created_at          TEXT NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_memories_scope ON memories"
            "(agent_id, created_by_user_id, activity_id, session_id, tier)"
        )
        conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                activity_id   TEXT NOT NULL,
                user_id       TEXT NOT NULL,
                session_id    TEXT NOT NULL,
                user_name     TEXT NOT NULL DEFAULT '',
                summary       TEXT NOT NULL DEFAULT '',
                unit_results  TEXT NOT NULL DEFAULT '[]',
                generated_at  TEXT NOT NULL,
                version       INTEGER NOT NULL DEFAULT 0,
                UNIQUE(activity_id, user_id, session_id)
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_code ON sessions(session_id)"
        )

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside a single transaction.

        Commits when the outermost block exits normally and rolls back on
        any exception, including cancellation.

        Yields:
            The open connection.
        """
        conn = self._get_connection()
        if self._depth > 0:
            self._depth += 1
            try:
                yield conn
            finally:
                self._depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE")
        self._depth = 1
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            self._depth = 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._depth = 0
