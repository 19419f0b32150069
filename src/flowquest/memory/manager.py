"""Memory manager for building and rebalancing a turn's working memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .extractor import exchange_content, extract_keywords
from .models import MemoryEntry, MemoryScope, MemoryTier
from .store import MemoryStore

if TYPE_CHECKING:
    from .consolidator import MemoryConsolidator
    from .promoter import RelevancePromoter


@dataclass
class MemoryWorkingSet:
    """The hot and cold memories in play for one turn.

    Attributes:
        hot: Memories injected into the prompt.
        cold: Memories held back unless promoted.
        base_hot_count: Size of ``hot`` before any promotion this turn.
        promoted: Cold memories copied into ``hot`` for this turn only.
    """

    hot: list[MemoryEntry]
    cold: list[MemoryEntry]
    base_hot_count: int
    promoted: list[MemoryEntry] = field(default_factory=list)

    def snapshot(self) -> list[MemoryEntry]:
        """All memories at this instant, hot first."""
        return [*self.hot, *self.cold]


@dataclass
class MemoryUpdate:
    """Memory writes produced by one turn, applied at commit time.

    Attributes:
        scope: Owner of the dynamic memories.
        created: The HOT and COLD copies of the exchange.
        consolidated: Replacement HOT entries, empty if no consolidation.
    """

    scope: MemoryScope
    created: list[MemoryEntry] = field(default_factory=list)
    consolidated: list[MemoryEntry] = field(default_factory=list)


class MemoryManager:
    """Orchestrates memory operations: loading, promotion, creation, compaction.

    This is the main interface for the memory system, coordinating
    between the store, the promoter and the consolidator. Nothing is
    written until ``commit`` is called.
    """

    def __init__(
        self,
        store: MemoryStore,
        promoter: RelevancePromoter | None = None,
        consolidator: MemoryConsolidator | None = None,
    ) -> None:
        """Initialize the manager with a store and optional judges.

        Args:
            store: The MemoryStore for dynamic memories.
            promoter: Optional RelevancePromoter; without it nothing is promoted.
            consolidator: Optional MemoryConsolidator; without it the hot
                tier is never compacted.
        """
        self.store = store
        self.promoter = promoter
        self.consolidator = consolidator

    def load_working_set(
        self,
        baseline: list[MemoryEntry],
        scope: MemoryScope | None = None,
    ) -> MemoryWorkingSet:
        """Build the baseline hot/cold sets for a turn.

        Args:
            baseline: Persona and activity memories, in that order.
            scope: Owner of previously persisted dynamic memories, if any.

        Returns:
            The working set before promotion.
        """
        memories = list(baseline)
        if scope is not None:
            memories.extend(self.store.find_dynamic(scope))

        hot = [m for m in memories if m.tier is MemoryTier.HOT]
        cold = [m for m in memories if m.tier is MemoryTier.COLD]
        return MemoryWorkingSet(hot=hot, cold=cold, base_hot_count=len(hot))

    async def promote(self, working: MemoryWorkingSet, message: str) -> list[MemoryEntry]:
        """Copy relevant cold memories into the hot set for this turn.

        The store is not touched; promoted memories stay COLD there.

        Args:
            working: The turn's working set, updated in place.
            message: The user's message.

        Returns:
            The promoted memories.
        """
        if self.promoter is None or not working.cold:
            return []

        selected = await self.promoter.select(working.cold, message)
        working.promoted = selected
        working.hot.extend(m.with_tier(MemoryTier.HOT) for m in selected)
        return selected

    def record_exchange(
        self,
        working: MemoryWorkingSet,
        scope: MemoryScope,
        message: str,
        reply: str,
    ) -> MemoryUpdate:
        """Create the HOT and COLD memories of one exchange.

        Both copies share content and tags and are added to the working
        set immediately.

        Args:
            working: The turn's working set, updated in place.
            scope: Owner of the new memories.
            message: The user's message.
            reply: The assistant's reply.

        Returns:
            A MemoryUpdate holding the two new entries.
        """
        content = exchange_content(message, reply)
        tags = extract_keywords(f"{reply} {message}")

        def make(tier: MemoryTier) -> MemoryEntry:
            return MemoryEntry(
                content=content,
                tier=tier,
                agent_id=scope.agent_id,
                tags=list(tags),
                activity_id=scope.activity_id,
                session_id=scope.session_id,
                created_by_user_id=scope.user_id,
            )

        hot_entry = make(MemoryTier.HOT)
        cold_entry = make(MemoryTier.COLD)
        working.hot.append(hot_entry)
        working.cold.append(cold_entry)
        return MemoryUpdate(scope=scope, created=[hot_entry, cold_entry])

    async def consolidate(
        self,
        working: MemoryWorkingSet,
        update: MemoryUpdate,
        message: str,
        reply: str,
    ) -> list[MemoryEntry]:
        """Compact the hot set if it is over target.

        On success every dynamic hot memory of the scope moves to the cold
        set and the consolidated entries take their place.

        Args:
            working: The turn's working set, updated in place.
            update: The turn's pending writes, updated in place.
            message: The user's message.
            reply: The assistant's reply.

        Returns:
            The consolidated entries, empty if nothing changed.
        """
        if self.consolidator is None:
            return []

        consolidated = await self.consolidator.consolidate(
            working.hot, update.scope, working.base_hot_count, message, reply
        )
        if not consolidated:
            return []

        scope = update.scope
        cold_ids = {m.id for m in working.cold}
        demoted = [m for m in working.hot if m.in_scope(scope)]
        working.cold.extend(
            m.with_tier(MemoryTier.COLD) for m in demoted if m.id not in cold_ids
        )
        working.hot = [m for m in working.hot if not m.in_scope(scope)] + consolidated
        update.consolidated = consolidated
        return consolidated

    def commit(self, update: MemoryUpdate) -> None:
        """Persist a turn's memory writes.

        New exchange memories are inserted first so the consolidation
        demotion also covers the new HOT copy.
        """
        with self.store.db.transaction():
            self.store.insert_many(update.created)
            if update.consolidated:
                self.store.demote_hot(update.scope)
                self.store.insert_many(update.consolidated)

    def format_for_prompt(self, memories: list[MemoryEntry], limit: int = 5) -> str:
        """Format hot memories as a numbered block for the system prompt.

        Args:
            memories: Hot memories, most important first.
            limit: Maximum number of memories to include.

        Returns:
            The memory block, or empty string if there are no memories.
        """
        if not memories or limit <= 0:
            return ""

        lines = []
        for i, memory in enumerate(memories[:limit], start=1):
            line = f"{i}. {memory.content}"
            if memory.tags:
                line += f" (tags: {', '.join(memory.tags)})"
            lines.append(line)
        return "Your character memories:\n" + "\n".join(lines)
