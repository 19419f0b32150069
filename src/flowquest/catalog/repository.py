"""Read-only access to authored content.

The engine only needs to look things up by id, so any backing store works
as long as it implements the ContentRepository protocol. The bundled
implementation keeps everything in memory and can be filled from a
directory of markdown files.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Protocol

from ..errors import NotFoundError
from .models import Activity, CoursePackage, Persona, Unit
from .parser import ContentKind, ContentParseError, parse_content_file

logger = logging.getLogger(__name__)


class ContentRepository(Protocol):
    """Lookup interface for personas, courses, units and activities."""

    def get_activity(self, activity_id: str) -> Activity | None: ...

    def get_persona(self, agent_id: str) -> Persona | None: ...

    def get_course(self, course_id: str) -> CoursePackage | None: ...

    def list_units(self, course_id: str) -> list[Unit]: ...


@dataclass
class ActivityContent:
    """Everything the engine needs to run one activity."""

    activity: Activity
    persona: Persona
    course: CoursePackage
    units: list[Unit]

    def unit_index(self, unit_id: str) -> int:
        """Catalog position of a unit, or -1 if it isn't in the course."""
        for index, unit in enumerate(self.units):
            if unit.id == unit_id:
                return index
        return -1

    def next_unit(self, unit_id: str) -> Unit | None:
        """The unit after unit_id in catalog order, if any."""
        index = self.unit_index(unit_id)
        if index < 0 or index + 1 >= len(self.units):
            return None
        return self.units[index + 1]


class InMemoryContentRepository:
    """ContentRepository backed by dictionaries."""

    def __init__(
        self,
        personas: list[Persona] | None = None,
        courses: list[CoursePackage] | None = None,
        units: list[Unit] | None = None,
        activities: list[Activity] | None = None,
    ) -> None:
        self._personas: dict[str, Persona] = {}
        self._courses: dict[str, CoursePackage] = {}
        self._units: dict[str, Unit] = {}
        self._activities: dict[str, Activity] = {}

        for persona in personas or []:
            self.add(persona)
        for course in courses or []:
            self.add(course)
        for unit in units or []:
            self.add(unit)
        for activity in activities or []:
            self.add(activity)

    def add(self, item: Persona | CoursePackage | Unit | Activity) -> None:
        """Register an item, replacing any previous item with the same id."""
        if isinstance(item, Persona):
            self._personas[item.id] = item
        elif isinstance(item, CoursePackage):
            self._courses[item.id] = item
        elif isinstance(item, Unit):
            self._units[item.id] = item
        elif isinstance(item, Activity):
            self._activities[item.id] = item
        else:
            raise TypeError(f"Unsupported content item: {type(item).__name__}")

    def get_activity(self, activity_id: str) -> Activity | None:
        return self._activities.get(activity_id)

    def get_persona(self, agent_id: str) -> Persona | None:
        return self._personas.get(agent_id)

    def get_course(self, course_id: str) -> CoursePackage | None:
        return self._courses.get(course_id)

    def list_units(self, course_id: str) -> list[Unit]:
        """Units of a course sorted by order, then id."""
        units = [u for u in self._units.values() if u.course_id == course_id]
        return sorted(units, key=lambda u: (u.order, u.id))

    def list_activities(self) -> list[Activity]:
        """All activities sorted by id."""
        return sorted(self._activities.values(), key=lambda a: a.id)


def _scan_content_files(base_dir: Path) -> Iterator[Path]:
    """Yield markdown files in a content directory, sorted by name."""
    if not base_dir.is_dir():
        return

    yield from sorted(p for p in base_dir.iterdir() if p.is_file() and p.suffix == ".md")


def load_content_dir(root: Path) -> InMemoryContentRepository:
    """Load every content file under root.

    Expects ``agents/``, ``courses/``, ``units/`` and ``activities/``
    subdirectories of ``*.md`` files. Files that fail to parse are logged
    and skipped.

    Args:
        root: The content directory.

    Returns:
        A repository holding everything that parsed.
    """
    repository = InMemoryContentRepository()

    for kind in ContentKind:
        for path in _scan_content_files(root / kind.value):
            try:
                repository.add(parse_content_file(path, kind))
            except ContentParseError as e:
                logger.warning("Failed to load %s from %s: %s", kind.value, path, e)

    return repository


def resolve_activity(content: ContentRepository, activity_id: str) -> ActivityContent:
    """Gather an activity with its persona, course and units.

    Raises:
        NotFoundError: If any of them is missing or the course has no units.
    """
    activity = content.get_activity(activity_id)
    if activity is None:
        raise NotFoundError("activity", activity_id)

    persona = content.get_persona(activity.agent_id)
    if persona is None:
        raise NotFoundError("agent", activity.agent_id)

    course = content.get_course(activity.course_id)
    if course is None:
        raise NotFoundError("course", activity.course_id)

    units = content.list_units(course.id)
    if not units:
        raise NotFoundError("units for course", course.id)

    return ActivityContent(activity=activity, persona=persona, course=course, units=units)
