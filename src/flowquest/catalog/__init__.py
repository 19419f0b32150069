"""Authored content: personas, courses, units and activities."""

from .models import (
    Activity,
    CoursePackage,
    PassCondition,
    PassConditionType,
    Persona,
    Unit,
)
from .parser import (
    ContentKind,
    ContentParseError,
    ContentValidationError,
    parse_content,
    parse_content_file,
)
from .repository import (
    ActivityContent,
    ContentRepository,
    InMemoryContentRepository,
    load_content_dir,
    resolve_activity,
)

__all__ = [
    "Activity",
    "ActivityContent",
    "ContentKind",
    "ContentParseError",
    "ContentRepository",
    "ContentValidationError",
    "CoursePackage",
    "InMemoryContentRepository",
    "PassCondition",
    "PassConditionType",
    "Persona",
    "Unit",
    "load_content_dir",
    "parse_content",
    "parse_content_file",
    "resolve_activity",
]
