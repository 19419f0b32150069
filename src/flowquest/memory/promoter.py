"""Relevance-based promotion of cold memories."""

import logging
import re

from ..llm import TextGenerator
from .models import MemoryEntry

logger = logging.getLogger(__name__)

SELECTION_SYSTEM = (
    "You are a memory analysis assistant. You decide which memories are "
    "relevant to what the user just said."
)

SELECTION_PROMPT = """Decide which of the following cold memories are relevant to the user's input.

Cold memories:
{memories}

User input: {message}

Reply with only the numbers of the relevant memories separated by commas, or "none" if none are relevant. For example: 1,3,5 or none"""

_NONE_RE = re.compile(r"^(無|无|none)[。.!！\s]*$", re.IGNORECASE)
_TOKEN_SPLIT_RE = re.compile(r"[,，、;\s]+")
_LEADING_INT_RE = re.compile(r"^(\d+)")


def parse_selection(text: str, count: int) -> list[int] | None:
    """Parse a relevance answer into zero-based positions.

    Args:
        text: The raw judge answer, e.g. "1, 3" or "none".
        count: Number of memories that were offered.

    Returns:
        Positions in offering order without duplicates, an empty list for
        an explicit "none" answer, or None if the answer is unparsable.
    """
    normalized = text.strip()
    if not normalized:
        return None

    if _NONE_RE.match(normalized):
        return []

    positions: list[int] = []
    found_number = False
    for token in _TOKEN_SPLIT_RE.split(normalized):
        match = _LEADING_INT_RE.match(token)
        if not match:
            continue
        found_number = True
        number = int(match.group(1))
        if 1 <= number <= count and (number - 1) not in positions:
            positions.append(number - 1)

    if not found_number:
        return None
    return positions


class RelevancePromoter:
    """Asks the judge which cold memories matter for the current message."""

    def __init__(self, generator: TextGenerator) -> None:
        """Initialize the promoter.

        Args:
            generator: Capability used for the relevance judgment.
        """
        self.generator = generator

    async def select(self, cold: list[MemoryEntry], message: str) -> list[MemoryEntry]:
        """Select the cold memories relevant to a user message.

        Args:
            cold: Cold memories available this turn.
            message: The user's message.

        Returns:
            The relevant memories, unchanged. Empty when nothing is
            relevant or the answer cannot be parsed.

        Raises:
            GenerationFailure: If the judge call fails.
        """
        if not cold:
            return []

        memories = "\n".join(f"{i + 1}. {m.content}" for i, m in enumerate(cold))
        prompt = SELECTION_PROMPT.format(memories=memories, message=message)
        answer = await self.generator.judge(prompt, system=SELECTION_SYSTEM)

        positions = parse_selection(answer, len(cold))
        if positions is None:
            logger.warning("Unparsable relevance answer, promoting nothing: %r", answer[:200])
            return []

        return [cold[i] for i in positions]
