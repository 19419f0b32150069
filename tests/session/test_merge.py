"""Tests for session merge rules."""

from datetime import datetime, timezone

from flowquest.session import (
    ConversationLog,
    UnitResult,
    UnitStatus,
    merge_logs,
    merge_unit_result,
    merge_unit_results,
)


def at(second: int) -> str:
    return f"2024-05-01T10:00:{second:02d}.000000+00:00"


def log(role: str, content: str, ts: str) -> ConversationLog:
    return ConversationLog(role=role, content=content, timestamp=ts)


class TestMergeLogs:
    def test_dedupes_replays(self):
        existing = [log("user", "hi", at(1)), log("assistant", "hello", at(2))]
        merged = merge_logs(existing, [log("user", "hi", at(1)), log("user", "bye", at(3))])
        assert [entry.content for entry in merged] == ["hi", "hello", "bye"]

    def test_same_content_different_time_kept(self):
        merged = merge_logs([log("user", "ok", at(1))], [log("user", "ok", at(2))])
        assert len(merged) == 2

    def test_sorted_by_timestamp_stably(self):
        merged = merge_logs(
            [log("user", "b", at(2))],
            [log("user", "a", at(1)), log("assistant", "c", at(2))],
        )
        assert [entry.content for entry in merged] == ["a", "b", "c"]

    def test_orders_mixed_timestamp_formats(self):
        merged = merge_logs(
            [log("user", "late", "2024-05-01T10:00:00+02:00"), log("user", "first", "2024-05-01T10:00:00Z")],
            [log("assistant", "second", "2024-05-01T10:00:00.500000+00:00"), log("user", "early", "2024-05-01T07:30:00Z")],
        )
        assert [entry.content for entry in merged] == ["early", "late", "first", "second"]

    def test_dedupes_same_instant_in_different_formats(self):
        instant = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        merged = merge_logs(
            [ConversationLog(role="user", content="hi", timestamp=instant)],
            [log("user", "hi", "2024-05-01T10:00:00Z"), log("user", "hi", "2024-05-01T12:00:00+02:00")],
        )
        assert len(merged) == 1


class TestMergeUnitResult:
    def test_idempotent_for_same_payload(self):
        payload = UnitResult(
            unit_id="u1",
            turn_count=1,
            important_keywords=["thanks"],
            conversation_logs=[log("user", "hi", at(1)), log("assistant", "hey", at(2))],
        )
        once = merge_unit_results([], [payload])
        twice = merge_unit_results(once, [payload])

        assert len(twice[0].conversation_logs) == len(once[0].conversation_logs) == 2
        assert twice[0].important_keywords == ["thanks"]

    def test_collections_union_and_append(self):
        existing = UnitResult(
            unit_id="u1",
            important_keywords=["a"],
            standard_pass_rules=["r1"],
            evaluation_results=["first"],
        )
        incoming = UnitResult(
            unit_id="u1",
            important_keywords=["a", "b"],
            standard_pass_rules=["r1", "r2"],
            evaluation_results=["second"],
        )
        merged = merge_unit_result(existing, incoming)

        assert merged.important_keywords == ["a", "b"]
        assert merged.standard_pass_rules == ["r1", "r2"]
        assert merged.evaluation_results == ["first", "second"]

    def test_scalars_overwritten_when_provided(self):
        existing = UnitResult(unit_id="u1", status=None, turn_count=1)
        merged = merge_unit_result(existing, UnitResult(unit_id="u1", status=UnitStatus.PASSED, turn_count=2))
        assert merged.status is UnitStatus.PASSED
        assert merged.turn_count == 2

    def test_scalars_kept_when_missing(self):
        existing = UnitResult(unit_id="u1", status=UnitStatus.FAILED, turn_count=3)
        merged = merge_unit_result(existing, UnitResult(unit_id="u1"))
        assert merged.status is UnitStatus.FAILED
        assert merged.turn_count == 3

    def test_turn_count_never_decreases(self):
        existing = UnitResult(unit_id="u1", turn_count=4)
        merged = merge_unit_result(existing, UnitResult(unit_id="u1", turn_count=2))
        assert merged.turn_count == 4

    def test_inputs_not_modified(self):
        existing = UnitResult(unit_id="u1", conversation_logs=[log("user", "a", at(1))])
        merge_unit_result(existing, UnitResult(unit_id="u1", conversation_logs=[log("user", "b", at(2))]))
        assert len(existing.conversation_logs) == 1


class TestMergeUnitResults:
    def test_new_units_appended_in_order(self):
        existing = [UnitResult(unit_id="u1", turn_count=2)]
        merged = merge_unit_results(existing, [UnitResult(unit_id="u2"), UnitResult(unit_id="u1")])

        assert [r.unit_id for r in merged] == ["u1", "u2"]
        assert merged[1].turn_count == 0
        assert merged[0].turn_count == 2
