"""Parser for content files with YAML frontmatter.

Personas, courses, units and activities are authored as markdown files.
The frontmatter carries the structured fields and the body carries the
long free text (a unit's behaviour prompt, a persona's background, a
course's description). Uses python-frontmatter for robust parsing.
"""

from enum import Enum
from pathlib import Path
from typing import Any

import frontmatter

from ..errors import ParseFailure
from ..memory.models import MemoryEntry, MemoryTier
from .models import (
    DEFAULT_MAX_TURNS,
    Activity,
    CoursePackage,
    PassCondition,
    PassConditionType,
    Persona,
    Unit,
)

ContentItem = Persona | CoursePackage | Unit | Activity


class ContentKind(Enum):
    """Kind of content file; the value is its directory name."""

    AGENT = "agents"
    COURSE = "courses"
    UNIT = "units"
    ACTIVITY = "activities"


class ContentParseError(ParseFailure):
    """Raised when a content file cannot be parsed."""

    pass


class ContentValidationError(ContentParseError):
    """Raised when content frontmatter fails validation."""

    pass


def _parse_string_or_list(value: Any) -> list[str]:
    """Parse a value that can be a comma-separated string or a list.

    Args:
        value: The raw value from frontmatter.

    Returns:
        List of non-empty strings.
    """
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    elif isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    return []


def _require_str(meta: dict[str, Any], name: str) -> str:
    """Get a required, non-empty scalar field as a string."""
    if name not in meta:
        raise ContentValidationError(f"Missing required field: {name}")

    raw = meta[name]
    if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
        raise ContentValidationError(
            f"Field '{name}' must be a string, got {type(raw).__name__}"
        )
    value = str(raw).strip()
    if not value:
        raise ContentValidationError(f"Field '{name}' cannot be empty")
    return value


def _optional_str(meta: dict[str, Any], name: str) -> str | None:
    """Get an optional scalar field; blank values count as absent."""
    raw = meta.get(name)
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def _positive_int(meta: dict[str, Any], name: str, default: int) -> int:
    """Get an optional positive integer field."""
    raw = meta.get(name, default)
    if isinstance(raw, bool):
        raise ContentValidationError(f"Field '{name}' must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ContentValidationError(f"Field '{name}' must be an integer") from None
    if value < 1:
        raise ContentValidationError(f"Field '{name}' must be at least 1")
    return value


def _parse_memories(raw: Any, agent_id: str) -> list[MemoryEntry]:
    """Parse baseline memories declared inline in frontmatter.

    Each item is either a mapping ``{tier, content, tags}`` or a plain
    string, which becomes a cold memory.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ContentValidationError("Field 'memories' must be a list")

    memories: list[MemoryEntry] = []
    for index, item in enumerate(raw, start=1):
        if isinstance(item, str):
            item = {"content": item}
        if not isinstance(item, dict):
            raise ContentValidationError(f"Memory {index} must be a mapping")

        content = str(item.get("content", "")).strip()
        if not content:
            raise ContentValidationError(f"Memory {index} has no content")

        try:
            tier = MemoryTier.parse(item.get("tier", item.get("type", "cold")))
        except ValueError as e:
            raise ContentValidationError(f"Memory {index}: {e}") from e

        kwargs: dict[str, Any] = {}
        if item.get("id"):
            kwargs["id"] = str(item["id"])
        memories.append(
            MemoryEntry(
                content=content,
                tier=tier,
                agent_id=agent_id,
                tags=_parse_string_or_list(item.get("tags", [])),
                created_by_user_id=str(item.get("author", "")),
                **kwargs,
            )
        )
    return memories


def _parse_pass_condition(raw: Any) -> PassCondition:
    """Parse a pass condition mapping such as ``{type: keyword, value: [...]}``."""
    if raw is None:
        return PassCondition()
    if not isinstance(raw, dict):
        raise ContentValidationError("Field 'pass_condition' must be a mapping")

    raw_type = str(raw.get("type", "keyword")).strip().lower()
    try:
        condition_type = PassConditionType(raw_type)
    except ValueError:
        raise ContentValidationError(
            f"Unknown pass condition type: {raw_type!r}"
        ) from None

    return PassCondition(type=condition_type, value=_parse_string_or_list(raw.get("value", [])))


def parse_content_file(path: Path, kind: ContentKind) -> ContentItem:
    """Parse a content file.

    Args:
        path: Path to the markdown file.
        kind: What the file describes.

    Returns:
        The parsed model.

    Raises:
        ContentParseError: If the file cannot be read or parsed.
        ContentValidationError: If required fields are missing.
    """
    if not path.exists():
        raise ContentParseError(f"Content file not found: {path}")

    if not path.is_file():
        raise ContentParseError(f"Not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ContentParseError(f"Cannot read content file {path}: {e}") from e

    return parse_content(content, kind)


def parse_content(content: str, kind: ContentKind) -> ContentItem:
    """Parse content file text.

    Args:
        content: The raw content of a markdown file with frontmatter.
        kind: What the file describes.

    Returns:
        The parsed model.

    Raises:
        ContentParseError: If the content cannot be parsed.
        ContentValidationError: If required fields are missing.
    """
    try:
        post = frontmatter.loads(content)
    except Exception as e:
        raise ContentParseError(f"Failed to parse frontmatter: {e}") from e

    meta = post.metadata
    body = post.content.strip()

    if kind is ContentKind.AGENT:
        agent_id = _require_str(meta, "id")
        return Persona(
            id=agent_id,
            name=_require_str(meta, "name"),
            tone=_optional_str(meta, "tone") or "",
            voice=_optional_str(meta, "voice") or "",
            background=_optional_str(meta, "background") or body,
            memories=_parse_memories(meta.get("memories"), agent_id),
        )

    if kind is ContentKind.COURSE:
        return CoursePackage(
            id=_require_str(meta, "id"),
            title=_require_str(meta, "title"),
            description=_optional_str(meta, "description") or body,
        )

    if kind is ContentKind.UNIT:
        difficulty = _positive_int(meta, "difficulty", 1)
        if difficulty > 5:
            raise ContentValidationError("Field 'difficulty' must be between 1 and 5")
        return Unit(
            id=_require_str(meta, "id"),
            course_id=_require_str(meta, "course"),
            order=_positive_int(meta, "order", 1),
            title=_optional_str(meta, "title") or "",
            intro_message=_optional_str(meta, "intro"),
            outro_message=_optional_str(meta, "outro"),
            max_turns=(
                _positive_int(meta, "max_turns", DEFAULT_MAX_TURNS)
                if meta.get("max_turns") is not None
                else None
            ),
            pass_condition=_parse_pass_condition(meta.get("pass_condition")),
            behavior_prompt=_optional_str(meta, "behavior") or body,
            agent_role=_optional_str(meta, "agent_role") or "",
            user_role=_optional_str(meta, "user_role") or "",
            difficulty_level=difficulty,
        )

    agent_id = _require_str(meta, "agent")
    return Activity(
        id=_require_str(meta, "id"),
        agent_id=agent_id,
        course_id=_require_str(meta, "course"),
        title=_optional_str(meta, "title") or "",
        memories=_parse_memories(meta.get("memories"), agent_id),
    )
