"""Tests for session models."""

from datetime import datetime, timezone

import pytest

from flowquest.memory import MemoryEntry, MemoryTier
from flowquest.session import ConversationLog, Session, SessionKey, UnitResult, UnitStatus

TS = "2024-05-01T10:00:00.000000+00:00"


class TestConversationLog:
    @pytest.mark.parametrize(
        "raw",
        [
            "2024-05-01T10:00:00Z",
            "2024-05-01T10:00:00",
            "2024-05-01T12:00:00+02:00",
            datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
        ],
    )
    def test_timestamp_normalized_to_utc(self, raw):
        assert ConversationLog(role="user", content="x", timestamp=raw).timestamp == TS

    def test_rejects_invalid_timestamp(self):
        with pytest.raises(ValueError, match="Invalid log timestamp"):
            ConversationLog(role="user", content="x", timestamp="yesterday")

    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown log role"):
            ConversationLog(role="system", content="x")

    def test_dedupe_key(self):
        log = ConversationLog(role="user", content="hi", timestamp=TS)
        assert log.dedupe_key == f"user|hi|{TS}"

    def test_from_dict_accepts_memories_alias(self):
        log = ConversationLog.from_dict({
            "role": "assistant",
            "content": "hello",
            "timestamp": TS,
            "memories": [{"content": "m", "type": "hot"}],
        })
        assert log.memory_snapshot is not None
        assert log.memory_snapshot[0].tier is MemoryTier.HOT

    def test_to_dict_omits_missing_optionals(self):
        data = ConversationLog(role="user", content="hi", timestamp=TS).to_dict()
        assert data == {"role": "user", "content": "hi", "timestamp": TS}

    def test_snapshot_serialized(self):
        snapshot = [MemoryEntry(content="m", tier=MemoryTier.COLD)]
        data = ConversationLog(
            role="user", content="hi", timestamp=TS, system_prompt="p", memory_snapshot=snapshot
        ).to_dict()
        assert data["system_prompt"] == "p"
        assert data["memory_snapshot"][0]["tier"] == "cold"


class TestUnitResult:
    def test_defaults_are_active(self):
        result = UnitResult(unit_id="u1")
        assert result.is_active is True
        assert result.turns == 0

    def test_user_messages(self):
        result = UnitResult(
            unit_id="u1",
            conversation_logs=[
                ConversationLog(role="assistant", content="intro"),
                ConversationLog(role="user", content="hello"),
            ],
        )
        assert result.user_messages() == ["hello"]

    def test_from_dict_keeps_unset_fields(self):
        result = UnitResult.from_dict({"unit_id": "u1"})
        assert result.status is None
        assert result.turn_count is None

    def test_status_roundtrip(self):
        data = UnitResult(unit_id="u1", status=UnitStatus.PASSED, turn_count=2).to_dict()
        assert data["status"] == "passed"
        assert UnitResult.from_dict(data).status is UnitStatus.PASSED


class TestSession:
    def test_key(self):
        session = Session(activity_id="a", user_id="u", session_id="s")
        assert session.key == SessionKey("a", "u", "s")
        assert str(session.key) == "a/u/s"

    def test_completed_follows_summary(self):
        assert Session(activity_id="a", user_id="u", session_id="s").completed is False
        assert Session(activity_id="a", user_id="u", session_id="s", summary="done").completed is True

    def test_to_dict_uses_underscore_id(self):
        data = Session(activity_id="a", user_id="u", session_id="s", id=7).to_dict()
        assert data["_id"] == 7
        assert Session.from_dict(data).id == 7
