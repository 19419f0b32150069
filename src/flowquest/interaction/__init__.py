"""Interaction engine: prompts, pass evaluation and the dialogue orchestrator."""

from .evaluator import PassEvaluator, PassVerdict, keyword_passed, matched_keywords, parse_verdict
from .orchestrator import (
    COURSE_COMPLETED_NOTICE,
    DEFAULT_USER_ID,
    TURN_LIMIT_NOTICE,
    ChatResult,
    DialogueOrchestrator,
)
from .prompt import build_pass_check_prompt, build_system_prompt

__all__ = [
    "COURSE_COMPLETED_NOTICE",
    "DEFAULT_USER_ID",
    "TURN_LIMIT_NOTICE",
    "ChatResult",
    "DialogueOrchestrator",
    "PassEvaluator",
    "PassVerdict",
    "build_pass_check_prompt",
    "build_system_prompt",
    "keyword_passed",
    "matched_keywords",
    "parse_verdict",
]
