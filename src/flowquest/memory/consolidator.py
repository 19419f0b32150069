"""Summarization-based compaction of the hot memory tier."""

import logging
import re

from ..llm import TextGenerator
from .extractor import extract_keywords
from .models import MemoryEntry, MemoryScope, MemoryTier

logger = logging.getLogger(__name__)

DEFAULT_MIN_TARGET = 3

CONSOLIDATION_SYSTEM = (
    "You are a memory consolidation assistant. You keep the most important "
    "memories and merge the rest."
)

CONSOLIDATION_PROMPT = """Consolidate the following hot memories, merging {count} memories into {target} new memories.

Current hot memories ({count}):
{memories}

The other person said: {message}

You replied: {reply}

Merge related memories into new ones. While merging:
1. Keep the important information
2. Combine similar or related content
3. Produce exactly {target} consolidated memories

Reply with the consolidated memories in this format:
entry 1: [memory content]
entry 2: [memory content]
...
entry {target}: [memory content]"""


def parse_consolidation(text: str, target: int) -> list[str]:
    """Parse labelled summaries out of a consolidation answer.

    Looks for ``entry k: <text>`` lines for k in 1..target. Labels that
    are missing or empty are skipped, so the result may be shorter than
    ``target``.

    Args:
        text: The raw judge answer.
        target: Number of summaries that were requested.

    Returns:
        The summaries in label order.
    """
    summaries: list[str] = []
    for k in range(1, target + 1):
        pattern = re.compile(
            rf"^\s*(?:[-*]\s*)?(?:entry|memory|記憶)\s*{k}\s*[:：]\s*(.+?)\s*$",
            re.IGNORECASE | re.MULTILINE,
        )
        match = pattern.search(text)
        if not match:
            continue
        content = match.group(1).strip()
        if content.startswith("[") and content.endswith("]"):
            content = content[1:-1].strip()
        if content:
            summaries.append(content)
    return summaries


class MemoryConsolidator:
    """Summarizes an over-capacity hot tier down to a target size.

    The target is ``max(min_target, base_hot_count)`` where base_hot_count
    is the size of the hot set at the start of the turn.
    """

    def __init__(
        self,
        generator: TextGenerator,
        min_target: int = DEFAULT_MIN_TARGET,
    ) -> None:
        """Initialize the consolidator.

        Args:
            generator: Capability used for summarization.
            min_target: Floor of the consolidation target.
        """
        self.generator = generator
        self.min_target = min_target

    def target_for(self, base_hot_count: int) -> int:
        """Return the consolidation target for a turn."""
        return max(self.min_target, base_hot_count)

    async def consolidate(
        self,
        hot: list[MemoryEntry],
        scope: MemoryScope,
        base_hot_count: int,
        message: str,
        reply: str,
    ) -> list[MemoryEntry]:
        """Summarize the hot set if it exceeds the target.

        Args:
            hot: The working hot set, including this turn's new memory.
            scope: Owner of the consolidated memories.
            base_hot_count: Hot set size at the start of the turn.
            message: The user's message this turn.
            reply: The assistant's reply this turn.

        Returns:
            New dynamic HOT entries replacing the scope's hot memories.
            Empty if no consolidation was needed or nothing parsed.

        Raises:
            GenerationFailure: If the summarization call fails.
        """
        target = self.target_for(base_hot_count)
        if len(hot) <= target:
            return []

        memories = "\n".join(f"{i + 1}. {m.content}" for i, m in enumerate(hot))
        prompt = CONSOLIDATION_PROMPT.format(
            count=len(hot),
            target=target,
            memories=memories,
            message=message,
            reply=reply,
        )
        answer = await self.generator.judge(prompt, system=CONSOLIDATION_SYSTEM)

        summaries = parse_consolidation(answer, target)
        if not summaries:
            logger.warning("Consolidation answer had no usable entries: %r", answer[:200])
            return []
        if len(summaries) < target:
            logger.warning(
                "Consolidation parsed %d of %d entries, keeping a smaller hot set",
                len(summaries),
                target,
            )

        return [
            MemoryEntry(
                content=summary,
                tier=MemoryTier.HOT,
                agent_id=scope.agent_id,
                tags=extract_keywords(summary),
                activity_id=scope.activity_id,
                session_id=scope.session_id,
                created_by_user_id=scope.user_id,
            )
            for summary in summaries
        ]
