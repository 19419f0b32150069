"""Exceptions raised by the interaction engine."""

from __future__ import annotations


class FlowQuestError(Exception):
    """Base exception for all FlowQuest errors."""

    pass


class ValidationError(FlowQuestError):
    """Raised when a request is missing required identifiers.

    Raised before any side effect takes place.
    """

    pass


class NotFoundError(FlowQuestError):
    """Raised when an activity, persona, course or session doesn't exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class GenerationFailure(FlowQuestError):
    """Raised when a text-generation or judge call fails or times out.

    The turn is aborted before anything is persisted, so the caller can
    safely retry.
    """

    pass


class PersistenceConflict(FlowQuestError):
    """Raised when a session write keeps losing races after all retries."""

    def __init__(self, key: object, attempts: int) -> None:
        self.key = key
        self.attempts = attempts
        super().__init__(f"Could not persist session {key} after {attempts} attempts")


class ParseFailure(FlowQuestError):
    """Raised when model output cannot be parsed into the expected shape.

    Call sites inside a turn never let this escape; they fall back to a
    closed default instead.
    """

    pass
