"""Session records, merge rules and persistence."""

from .locks import SessionLocks
from .merge import merge_logs, merge_unit_result, merge_unit_results
from .models import (
    ASSISTANT,
    USER,
    ConversationLog,
    Session,
    SessionKey,
    UnitResult,
    UnitStatus,
)
from .report import SessionReport, UnitReport, build_report
from .store import SessionStore, StaleWrite

__all__ = [
    "ASSISTANT",
    "USER",
    "ConversationLog",
    "Session",
    "SessionKey",
    "SessionLocks",
    "SessionReport",
    "SessionStore",
    "StaleWrite",
    "UnitReport",
    "UnitResult",
    "UnitStatus",
    "build_report",
    "merge_logs",
    "merge_unit_result",
    "merge_unit_results",
]
