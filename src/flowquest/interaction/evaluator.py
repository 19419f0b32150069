"""Pass-condition evaluation for units."""

import logging
import re
from dataclasses import dataclass, field

from ..catalog.models import PassConditionType, Unit
from ..llm import TextGenerator
from ..session.models import USER, ConversationLog
from .prompt import build_pass_check_prompt

logger = logging.getLogger(__name__)

_YES = re.compile(r"^yes\b")
_NO = re.compile(r"^no\b")


def parse_verdict(text: str) -> bool | None:
    """Parse a judge's YES/NO answer.

    Only the start of the answer counts, so "Yes, because..." is a yes
    while "I think yes" is not recognized.

    Returns:
        True or False, or None when the answer is neither.
    """
    normalized = text.strip().lower()
    if _YES.match(normalized):
        return True
    if _NO.match(normalized):
        return False
    return None


def matched_keywords(keywords: list[str], user_messages: list[str]) -> list[str]:
    """Keywords found, case-insensitively, in the learner's messages."""
    text = " ".join(user_messages).lower()
    return [k for k in keywords if k.lower() in text]


def keyword_passed(keywords: list[str], user_messages: list[str]) -> bool:
    """True if every keyword appears somewhere in the learner's messages.

    Matching is a case-insensitive substring test over all messages joined
    together, so keywords may be spread across turns in any order. An
    empty keyword list always passes.
    """
    return len(matched_keywords(keywords, user_messages)) == len(keywords)


@dataclass
class PassVerdict:
    """Result of checking a unit's pass condition after a turn."""

    passed: bool
    evaluation: str | None = None
    keywords: list[str] = field(default_factory=list)


class PassEvaluator:
    """Decides whether a unit's pass condition is met."""

    def __init__(self, generator: TextGenerator) -> None:
        self.generator = generator

    async def evaluate(self, unit: Unit, logs: list[ConversationLog]) -> PassVerdict:
        """Check the pass condition against the unit's conversation so far.

        Args:
            unit: The unit being played.
            logs: Every log of the unit, including the latest exchange.

        Returns:
            The verdict. An llm answer that is neither yes nor no counts
            as not passed; its text is still kept as the evaluation.

        Raises:
            GenerationFailure: If the judge call fails.
        """
        condition = unit.pass_condition
        user_messages = [log.content for log in logs if log.role == USER]

        if condition.type is PassConditionType.KEYWORD:
            found = matched_keywords(condition.value, user_messages)
            return PassVerdict(passed=len(found) == len(condition.value), keywords=found)

        answer = await self.generator.judge(build_pass_check_prompt(condition.value, logs))
        evaluation = answer.strip()
        verdict = parse_verdict(evaluation)
        if verdict is None:
            logger.warning(
                "Ambiguous pass verdict for unit %s, treating as not passed: %r",
                unit.id, evaluation[:200],
            )
        return PassVerdict(passed=bool(verdict), evaluation=evaluation)
