"""SQLite storage for dynamic memories."""

import json
import sqlite3

from ..storage import Database
from .models import MemoryEntry, MemoryScope, MemoryTier

_COLUMNS = (
    "id, agent_id, created_by_user_id, activity_id, session_id, "
    "tier, content, tags, created_at"
)
_SCOPE_CLAUSE = (
    "agent_id = ? AND created_by_user_id = ? AND activity_id = ? AND session_id = ?"
)


def _scope_params(scope: MemoryScope) -> tuple[str, str, str, str]:
    return (scope.agent_id, scope.user_id, scope.activity_id, scope.session_id)


class MemoryStore:
    """Persistent storage for dynamic memories.

    Only memories created during play live here. Baseline memories come
    from persona and activity content and are never written.
    Entries are never deleted; consolidation only flips their tier.
    """

    def __init__(self, db: Database) -> None:
        """Initialize the store on a shared database.

        Args:
            db: The database holding the memories table.
        """
        self.db = db

    def insert_many(self, entries: list[MemoryEntry]) -> int:
        """Insert dynamic memories.

        Args:
            entries: Entries to insert. Each must carry an activity and session.

        Returns:
            Number of entries inserted.

        Raises:
            ValueError: If an entry is a baseline (unscoped) memory.
        """
        if not entries:
            return 0

        for entry in entries:
            if not entry.is_dynamic:
                raise ValueError(f"Refusing to persist baseline memory {entry.id}")

        with self.db.transaction() as conn:
            conn.executemany(
                f"INSERT INTO memories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        entry.id,
                        entry.agent_id,
                        entry.created_by_user_id,
                        entry.activity_id,
                        entry.session_id,
                        entry.tier.value,
                        entry.content,
                        json.dumps(entry.tags, ensure_ascii=False),
                        entry.created_at,
                    )
                    for entry in entries
                ],
            )
        return len(entries)

    def find_dynamic(
        self, scope: MemoryScope, tier: MemoryTier | None = None
    ) -> list[MemoryEntry]:
        """Get the dynamic memories of a scope, oldest first.

        Args:
            scope: The owner of the memories.
            tier: Optional tier filter.

        Returns:
            List of memories ordered by creation.
        """
        query = f"SELECT {_COLUMNS} FROM memories WHERE {_SCOPE_CLAUSE}"
        params: list[str] = list(_scope_params(scope))
        if tier is not None:
            query += " AND tier = ?"
            params.append(tier.value)
        query += " ORDER BY created_at, seq"

        cursor = self.db.connection.execute(query, params)
        return [self._row_to_entry(row) for row in cursor.fetchall()]

    def count(self, scope: MemoryScope, tier: MemoryTier) -> int:
        """Count the dynamic memories of a scope in one tier."""
        cursor = self.db.connection.execute(
            f"SELECT COUNT(*) FROM memories WHERE {_SCOPE_CLAUSE} AND tier = ?",
            (*_scope_params(scope), tier.value),
        )
        return int(cursor.fetchone()[0])

    def demote_hot(self, scope: MemoryScope) -> int:
        """Move every dynamic HOT memory of a scope to COLD.

        Args:
            scope: The owner of the memories.

        Returns:
            Number of memories demoted.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE memories SET tier = ? WHERE {_SCOPE_CLAUSE} AND tier = ?",
                (MemoryTier.COLD.value, *_scope_params(scope), MemoryTier.HOT.value),
            )
        return cursor.rowcount

    def _row_to_entry(self, row: sqlite3.Row) -> MemoryEntry:
        """Convert a database row to a MemoryEntry."""
        return MemoryEntry(
            id=row["id"],
            agent_id=row["agent_id"],
            created_by_user_id=row["created_by_user_id"],
            activity_id=row["activity_id"],
            session_id=row["session_id"],
            tier=MemoryTier(row["tier"]),
            content=row["content"],
            tags=json.loads(row["tags"]),
            created_at=row["created_at"],
        )
