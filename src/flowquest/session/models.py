"""Data models for session records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..memory.models import MemoryEntry, utc_now

USER = "user"
ASSISTANT = "assistant"
ROLES = (USER, ASSISTANT)


class UnitStatus(Enum):
    """Outcome of a closed unit. An open unit has no status."""

    PASSED = "passed"
    FAILED = "failed"


def _timestamp(value: Any) -> str:
    """Normalize a timestamp to a UTC ISO string with microseconds.

    Every stored timestamp has the same shape as ``utc_now()``, so string
    order is time order and one instant always compares equal. Naive
    values are taken as UTC and a trailing "Z" is accepted.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"Invalid log timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat(timespec="microseconds")


@dataclass
class ConversationLog:
    """One message within a unit.

    Attributes:
        role: "user" or "assistant".
        content: Message text.
        timestamp: ISO timestamp of the message.
        system_prompt: Prompt in effect when the message was produced.
        memory_snapshot: Hot and cold memories at that instant, for audit.
    """

    role: str
    content: str
    timestamp: str = field(default_factory=utc_now)
    system_prompt: str | None = None
    memory_snapshot: list[MemoryEntry] | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown log role: {self.role!r}")
        self.timestamp = _timestamp(self.timestamp)

    @property
    def dedupe_key(self) -> str:
        """Identity used when merging logs: role, content and timestamp."""
        return f"{self.role}|{self.content}|{self.timestamp}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.system_prompt is not None:
            data["system_prompt"] = self.system_prompt
        if self.memory_snapshot is not None:
            data["memory_snapshot"] = [m.to_dict() for m in self.memory_snapshot]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationLog":
        """Create from dictionary."""
        snapshot = data.get("memory_snapshot", data.get("memories"))
        return cls(
            role=str(data["role"]),
            content=str(data.get("content", "")),
            timestamp=_timestamp(data.get("timestamp") or utc_now()),
            system_prompt=data.get("system_prompt"),
            memory_snapshot=(
                [MemoryEntry.from_dict(m) for m in snapshot] if snapshot is not None else None
            ),
        )


@dataclass
class UnitResult:
    """A learner's progress through one unit.

    ``status`` and ``turn_count`` are None when a partial update does not
    provide them. A stored result with no status is still active.
    """

    unit_id: str
    status: UnitStatus | None = None
    turn_count: int | None = None
    important_keywords: list[str] = field(default_factory=list)
    standard_pass_rules: list[str] = field(default_factory=list)
    evaluation_results: list[str] = field(default_factory=list)
    conversation_logs: list[ConversationLog] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        """True until the unit is passed or failed."""
        return self.status is None

    @property
    def turns(self) -> int:
        """Turn count, treating a missing count as zero."""
        return self.turn_count or 0

    def user_messages(self) -> list[str]:
        """Contents of the learner's messages, in order."""
        return [log.content for log in self.conversation_logs if log.role == USER]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "unit_id": self.unit_id,
            "important_keywords": list(self.important_keywords),
            "standard_pass_rules": list(self.standard_pass_rules),
            "evaluation_results": list(self.evaluation_results),
            "conversation_logs": [log.to_dict() for log in self.conversation_logs],
        }
        if self.status is not None:
            data["status"] = self.status.value
        if self.turn_count is not None:
            data["turn_count"] = self.turn_count
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnitResult":
        """Create from dictionary. Missing fields stay unset."""
        raw_status = data.get("status")
        turn_count = data.get("turn_count")
        return cls(
            unit_id=str(data["unit_id"]),
            status=UnitStatus(raw_status) if raw_status else None,
            turn_count=int(turn_count) if turn_count is not None else None,
            important_keywords=[str(k) for k in data.get("important_keywords") or []],
            standard_pass_rules=[str(r) for r in data.get("standard_pass_rules") or []],
            evaluation_results=[str(e) for e in data.get("evaluation_results") or []],
            conversation_logs=[
                ConversationLog.from_dict(log) for log in data.get("conversation_logs") or []
            ],
        )


@dataclass(frozen=True)
class SessionKey:
    """Natural key of a session: activity, learner and human session code."""

    activity_id: str
    user_id: str
    session_id: str

    def __str__(self) -> str:
        return f"{self.activity_id}/{self.user_id}/{self.session_id}"


@dataclass
class Session:
    """One learner's run through a course.

    ``user_name`` and ``summary`` are None when a partial update does not
    provide them. ``id`` and ``version`` are assigned by the store.
    """

    activity_id: str
    user_id: str
    session_id: str
    user_name: str | None = None
    summary: str | None = None
    unit_results: list[UnitResult] = field(default_factory=list)
    generated_at: str | None = None
    id: int | None = None
    version: int = 0

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.activity_id, self.user_id, self.session_id)

    @property
    def completed(self) -> bool:
        """True once a completion summary has been recorded."""
        return bool(self.summary)

    def unit_result(self, unit_id: str) -> UnitResult | None:
        """Get the result for a unit, if any."""
        for result in self.unit_results:
            if result.unit_id == unit_id:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "_id": self.id,
            "activity_id": self.activity_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "user_name": self.user_name or "",
            "summary": self.summary or "",
            "unit_results": [r.to_dict() for r in self.unit_results],
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        """Create from dictionary."""
        return cls(
            id=data.get("_id", data.get("id")),
            activity_id=str(data["activity_id"]),
            user_id=str(data["user_id"]),
            session_id=str(data["session_id"]),
            user_name=data.get("user_name"),
            summary=data.get("summary"),
            unit_results=[UnitResult.from_dict(r) for r in data.get("unit_results") or []],
            generated_at=data.get("generated_at"),
        )
