"""Tiered persona memory: hot/cold sets, promotion and consolidation."""

from .consolidator import MemoryConsolidator, parse_consolidation
from .extractor import exchange_content, extract_keywords
from .manager import MemoryManager, MemoryUpdate, MemoryWorkingSet
from .models import MemoryEntry, MemoryScope, MemoryTier
from .promoter import RelevancePromoter, parse_selection
from .store import MemoryStore

__all__ = [
    "MemoryConsolidator",
    "MemoryEntry",
    "MemoryManager",
    "MemoryScope",
    "MemoryStore",
    "MemoryTier",
    "MemoryUpdate",
    "MemoryWorkingSet",
    "RelevancePromoter",
    "exchange_content",
    "extract_keywords",
    "parse_consolidation",
    "parse_selection",
]
