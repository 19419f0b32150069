"""Tests for MemoryStore."""

import pytest

from flowquest.memory import MemoryEntry, MemoryScope, MemoryStore, MemoryTier
from flowquest.storage import Database

SCOPE = MemoryScope(agent_id="ana", user_id="u1", activity_id="act1", session_id="s1")
OTHER = MemoryScope(agent_id="ana", user_id="u2", activity_id="act1", session_id="s1")


def dynamic(content: str, tier: MemoryTier, scope: MemoryScope = SCOPE, **kwargs) -> MemoryEntry:
    return MemoryEntry(
        content=content,
        tier=tier,
        agent_id=scope.agent_id,
        activity_id=scope.activity_id,
        session_id=scope.session_id,
        created_by_user_id=scope.user_id,
        **kwargs,
    )


@pytest.fixture
def store(db: Database) -> MemoryStore:
    return MemoryStore(db)


class TestInsert:
    def test_insert_and_find(self, store: MemoryStore):
        entry = dynamic("hello", MemoryTier.HOT, tags=["greeting"])
        assert store.insert_many([entry]) == 1

        found = store.find_dynamic(SCOPE)
        assert len(found) == 1
        assert found[0].id == entry.id
        assert found[0].tags == ["greeting"]
        assert found[0].tier is MemoryTier.HOT

    def test_insert_empty(self, store: MemoryStore):
        assert store.insert_many([]) == 0

    def test_rejects_baseline(self, store: MemoryStore):
        baseline = MemoryEntry(content="authored", tier=MemoryTier.HOT, agent_id="ana")
        with pytest.raises(ValueError, match="baseline"):
            store.insert_many([baseline])
        assert store.find_dynamic(SCOPE) == []


class TestFind:
    def test_scoped_to_owner(self, store: MemoryStore):
        store.insert_many([dynamic("mine", MemoryTier.HOT), dynamic("theirs", MemoryTier.HOT, OTHER)])

        assert [m.content for m in store.find_dynamic(SCOPE)] == ["mine"]
        assert [m.content for m in store.find_dynamic(OTHER)] == ["theirs"]

    def test_ordered_by_creation(self, store: MemoryStore):
        same_time = "2026-01-01T00:00:00.000000+00:00"
        store.insert_many([
            dynamic("second", MemoryTier.COLD, created_at="2026-01-02T00:00:00.000000+00:00"),
            dynamic("first-a", MemoryTier.COLD, created_at=same_time),
            dynamic("first-b", MemoryTier.COLD, created_at=same_time),
        ])

        contents = [m.content for m in store.find_dynamic(SCOPE)]
        assert contents == ["first-a", "first-b", "second"]

    def test_filter_by_tier(self, store: MemoryStore):
        store.insert_many([dynamic("h", MemoryTier.HOT), dynamic("c", MemoryTier.COLD)])

        assert [m.content for m in store.find_dynamic(SCOPE, MemoryTier.COLD)] == ["c"]
        assert store.count(SCOPE, MemoryTier.HOT) == 1


class TestDemote:
    def test_demote_hot_flips_scope_only(self, store: MemoryStore):
        store.insert_many([
            dynamic("a", MemoryTier.HOT),
            dynamic("b", MemoryTier.HOT),
            dynamic("c", MemoryTier.COLD),
            dynamic("other", MemoryTier.HOT, OTHER),
        ])

        assert store.demote_hot(SCOPE) == 2
        assert store.count(SCOPE, MemoryTier.HOT) == 0
        assert store.count(SCOPE, MemoryTier.COLD) == 3
        assert store.count(OTHER, MemoryTier.HOT) == 1

    def test_transaction_rollback_discards_inserts(self, store: MemoryStore, db: Database):
        with pytest.raises(RuntimeError):
            with db.transaction():
                store.insert_many([dynamic("lost", MemoryTier.HOT)])
                raise RuntimeError("boom")

        assert store.find_dynamic(SCOPE) == []
