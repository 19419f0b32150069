"""Data models for the memory system."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string with microseconds."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def new_memory_id() -> str:
    """Generate an id for a memory entry."""
    return uuid.uuid4().hex


class MemoryTier(Enum):
    """Whether a memory is injected into the prompt (HOT) or held back (COLD)."""

    HOT = "hot"
    COLD = "cold"

    @classmethod
    def parse(cls, value: Any) -> "MemoryTier":
        """Parse a tier from a string such as 'hot' or 'Cold'.

        Raises:
            ValueError: If the value is not a known tier.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown memory tier: {value!r}") from None


@dataclass(frozen=True)
class MemoryScope:
    """The owner of a set of dynamic memories.

    Dynamic memories belong to one learner's run of one activity with one
    persona.
    """

    agent_id: str
    user_id: str
    activity_id: str
    session_id: str


@dataclass(frozen=True)
class MemoryEntry:
    """A piece of persona memory.

    Attributes:
        content: The memory text.
        tier: HOT if injected into the prompt, COLD otherwise.
        agent_id: Persona the memory belongs to.
        tags: Keywords describing the memory.
        id: Unique id.
        activity_id: Set only for dynamic memories.
        session_id: Set only for dynamic memories.
        created_by_user_id: Learner (or author) who caused the memory.
        created_at: ISO timestamp when created.
    """

    content: str
    tier: MemoryTier
    agent_id: str = ""
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=new_memory_id)
    activity_id: str | None = None
    session_id: str | None = None
    created_by_user_id: str = ""
    created_at: str = field(default_factory=utc_now)

    @property
    def is_dynamic(self) -> bool:
        """True for memories created during play rather than authored."""
        return self.activity_id is not None and self.session_id is not None

    def in_scope(self, scope: MemoryScope) -> bool:
        """Check whether this is a dynamic memory owned by scope."""
        return (
            self.is_dynamic
            and self.agent_id == scope.agent_id
            and self.created_by_user_id == scope.user_id
            and self.activity_id == scope.activity_id
            and self.session_id == scope.session_id
        )

    def with_tier(self, tier: MemoryTier) -> "MemoryEntry":
        """Return a copy moved to another tier."""
        return replace(self, tier=tier)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "agent_id": self.agent_id,
            "tier": self.tier.value,
            "content": self.content,
            "tags": list(self.tags),
            "created_by_user_id": self.created_by_user_id,
            "created_at": self.created_at,
        }
        if self.activity_id is not None:
            data["activity_id"] = self.activity_id
        if self.session_id is not None:
            data["session_id"] = self.session_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryEntry":
        """Create from dictionary."""
        kwargs: dict[str, Any] = {
            "content": str(data["content"]),
            "tier": MemoryTier.parse(data.get("tier", data.get("type", "cold"))),
            "agent_id": str(data.get("agent_id", "")),
            "tags": [str(t) for t in data.get("tags", [])],
            "activity_id": data.get("activity_id"),
            "session_id": data.get("session_id"),
            "created_by_user_id": str(data.get("created_by_user_id", "")),
        }
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        if data.get("created_at"):
            kwargs["created_at"] = str(data["created_at"])
        return cls(**kwargs)
