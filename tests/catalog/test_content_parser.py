"""Tests for content file parsing."""

from pathlib import Path

import pytest

from flowquest.catalog import (
    ContentKind,
    ContentParseError,
    ContentValidationError,
    PassConditionType,
    parse_content,
    parse_content_file,
)
from flowquest.memory import MemoryTier

CONTENT_DIR = Path(__file__).parent / "fixtures" / "content"


class TestParseContentFile:
    def test_persona(self):
        persona = parse_content_file(CONTENT_DIR / "agents" / "ana.md", ContentKind.AGENT)

        assert persona.id == "ana"
        assert persona.name == "Ana"
        assert persona.tone == "warm and patient"
        assert persona.background == "Ana is a barista at a busy neighbourhood cafe."
        assert [m.tier for m in persona.memories] == [MemoryTier.HOT, MemoryTier.COLD]
        assert persona.memories[0].tags == ["work", "cafe"]
        assert all(m.agent_id == "ana" and not m.is_dynamic for m in persona.memories)

    def test_unit(self):
        unit = parse_content_file(CONTENT_DIR / "units" / "01-greet.md", ContentKind.UNIT)

        assert unit.id == "greet"
        assert unit.course_id == "cafe"
        assert unit.order == 1
        assert unit.intro_message == "Hi there! What can I get you?"
        assert unit.max_turns == 3
        assert unit.pass_condition.type is PassConditionType.KEYWORD
        assert unit.pass_condition.value == ["thanks"]
        assert unit.behavior_prompt.startswith("Greet the customer")
        assert unit.difficulty_level == 2

    def test_unit_defaults(self):
        unit = parse_content_file(CONTENT_DIR / "units" / "02-order.md", ContentKind.UNIT)

        assert unit.intro_message is None
        assert unit.max_turns is None
        assert unit.turn_limit(10) == 10
        assert unit.pass_condition.type is PassConditionType.LLM
        assert len(unit.pass_condition.value) == 2

    def test_course(self):
        course = parse_content_file(CONTENT_DIR / "courses" / "cafe.md", ContentKind.COURSE)
        assert course.title == "Ordering coffee"
        assert course.description == "Practice ordering drinks in a cafe."

    def test_activity(self):
        activity = parse_content_file(
            CONTENT_DIR / "activities" / "cafe-roleplay.md", ContentKind.ACTIVITY
        )
        assert activity.agent_id == "ana"
        assert activity.course_id == "cafe"
        assert activity.title == "Cafe roleplay"
        assert activity.memories[0].agent_id == "ana"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ContentParseError, match="not found"):
            parse_content_file(tmp_path / "nope.md", ContentKind.UNIT)

    def test_directory(self, tmp_path: Path):
        with pytest.raises(ContentParseError, match="Not a file"):
            parse_content_file(tmp_path, ContentKind.UNIT)


class TestParseContentValidation:
    def test_missing_required_field(self):
        with pytest.raises(ContentValidationError, match="Missing required field: id"):
            parse_content("---\ncourse: cafe\n---\n", ContentKind.UNIT)

    def test_unknown_pass_condition(self):
        text = "---\nid: u\ncourse: c\npass_condition:\n  type: vibes\n---\n"
        with pytest.raises(ContentValidationError, match="Unknown pass condition type"):
            parse_content(text, ContentKind.UNIT)

    def test_max_turns_must_be_positive(self):
        text = "---\nid: u\ncourse: c\nmax_turns: 0\n---\n"
        with pytest.raises(ContentValidationError, match="at least 1"):
            parse_content(text, ContentKind.UNIT)

    def test_difficulty_range(self):
        text = "---\nid: u\ncourse: c\ndifficulty: 6\n---\n"
        with pytest.raises(ContentValidationError, match="between 1 and 5"):
            parse_content(text, ContentKind.UNIT)

    def test_bad_memory_tier(self):
        text = "---\nid: a\nname: A\nmemories:\n  - tier: warm\n    content: x\n---\n"
        with pytest.raises(ContentValidationError, match="Unknown memory tier"):
            parse_content(text, ContentKind.AGENT)

    def test_memories_must_be_list(self):
        text = "---\nid: a\nname: A\nmemories: nope\n---\n"
        with pytest.raises(ContentValidationError, match="must be a list"):
            parse_content(text, ContentKind.AGENT)

    def test_invalid_yaml(self):
        with pytest.raises(ContentParseError):
            parse_content("---\nid: [unclosed\n---\n", ContentKind.COURSE)

    def test_validation_error_is_parse_error(self):
        assert issubclass(ContentValidationError, ContentParseError)
