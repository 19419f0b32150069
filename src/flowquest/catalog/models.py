"""Content models: personas, courses, units and activities.

These are read-only inputs to the engine. They are authored elsewhere
and loaded through a ContentRepository.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..memory.models import MemoryEntry

DEFAULT_MAX_TURNS = 10


class PassConditionType(Enum):
    """How a unit decides that the learner has passed."""

    KEYWORD = "keyword"
    LLM = "llm"


@dataclass(frozen=True)
class PassCondition:
    """Rule deciding whether a unit is completed.

    For KEYWORD every value must appear in the learner's messages; for
    LLM the values are criteria handed to the judge.
    """

    type: PassConditionType = PassConditionType.KEYWORD
    value: list[str] = field(default_factory=list)


@dataclass
class Unit:
    """A single lesson or scene within a course.

    A unit without ``max_turns`` uses the engine's default turn budget.
    """

    id: str
    course_id: str
    order: int
    title: str = ""
    intro_message: str | None = None
    outro_message: str | None = None
    max_turns: int | None = None
    pass_condition: PassCondition = field(default_factory=PassCondition)
    behavior_prompt: str = ""
    agent_role: str = ""
    user_role: str = ""
    difficulty_level: int = 1

    def turn_limit(self, default: int = DEFAULT_MAX_TURNS) -> int:
        """Turn budget of the unit, falling back to ``default``."""
        return self.max_turns if self.max_turns is not None else default


@dataclass
class Persona:
    """The AI character the learner talks to."""

    id: str
    name: str
    tone: str = ""
    background: str = ""
    voice: str = ""
    memories: list[MemoryEntry] = field(default_factory=list)


@dataclass
class CoursePackage:
    """An ordered collection of units."""

    id: str
    title: str
    description: str = ""


@dataclass
class Activity:
    """A persona paired with a course, with activity-level memories."""

    id: str
    agent_id: str
    course_id: str
    title: str = ""
    memories: list[MemoryEntry] = field(default_factory=list)
