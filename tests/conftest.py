"""Shared fixtures: a temporary database, a small course and a scripted model."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from flowquest.catalog import (
    Activity,
    CoursePackage,
    InMemoryContentRepository,
    PassCondition,
    PassConditionType,
    Persona,
    Unit,
)
from flowquest.config import EngineConfig
from flowquest.logging import JSONLLogger
from flowquest.memory import (
    MemoryConsolidator,
    MemoryEntry,
    MemoryManager,
    MemoryStore,
    MemoryTier,
    RelevancePromoter,
)
from flowquest.interaction import DialogueOrchestrator
from flowquest.session import SessionStore
from flowquest.storage import Database


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """Create an initialized database in a temporary directory."""
    database = Database(tmp_path / "flowquest.db")
    database.init_db()
    yield database
    database.close()


@pytest.fixture
def content() -> InMemoryContentRepository:
    """A persona playing a two-unit course."""
    persona = Persona(
        id="ana",
        name="Ana",
        tone="friendly",
        background="A barista at a busy cafe.",
        memories=[
            MemoryEntry(content="Ana loves oat milk", tier=MemoryTier.HOT, agent_id="ana"),
            MemoryEntry(content="Ana grew up in Lisbon", tier=MemoryTier.COLD, agent_id="ana"),
        ],
    )
    course = CoursePackage(id="cafe", title="Ordering coffee", description="Practice ordering.")
    unit1 = Unit(
        id="greet",
        course_id="cafe",
        order=1,
        title="Greeting",
        intro_message="Hi there! What can I get you?",
        outro_message="Great, let's move on.",
        max_turns=3,
        pass_condition=PassCondition(PassConditionType.KEYWORD, ["thanks"]),
    )
    unit2 = Unit(
        id="order",
        course_id="cafe",
        order=2,
        title="Ordering",
        intro_message="So, which coffee would you like?",
        max_turns=2,
        pass_condition=PassCondition(PassConditionType.KEYWORD, ["latte"]),
    )
    activity = Activity(
        id="act1",
        agent_id="ana",
        course_id="cafe",
        title="Cafe roleplay",
        memories=[
            MemoryEntry(content="The cafe opens at 8", tier=MemoryTier.HOT, agent_id="ana"),
        ],
    )
    return InMemoryContentRepository(
        personas=[persona], courses=[course], units=[unit1, unit2], activities=[activity]
    )


def scripted_judge(
    selection: str = "none",
    consolidation: str = "entry 1: a\nentry 2: b\nentry 3: c",
    verdict: str = "YES",
):
    """Build a judge side effect that answers by prompt kind."""

    async def judge(prompt: str, system: str | None = None) -> str:
        if "cold memories" in prompt:
            return selection
        if prompt.startswith("Consolidate"):
            return consolidation
        if "pass criteria" in prompt:
            return verdict
        return ""

    return judge


@pytest.fixture
def generator() -> Mock:
    """A text generator replying "Sure!" and judging with scripted answers."""
    mock = Mock()
    mock.generate = AsyncMock(return_value="Sure!")
    mock.judge = AsyncMock(side_effect=scripted_judge())
    return mock


@pytest.fixture
def event_log(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture
def config(tmp_path: Path) -> EngineConfig:
    return EngineConfig(
        db_path=tmp_path / "flowquest.db",
        content_dir=tmp_path / "content",
        log_dir=tmp_path / "logs",
        persist_backoff=0.0,
    )


@pytest.fixture
def memory(db: Database, generator: Mock) -> MemoryManager:
    return MemoryManager(
        MemoryStore(db),
        promoter=RelevancePromoter(generator),
        consolidator=MemoryConsolidator(generator),
    )


@pytest.fixture
def sessions(db: Database) -> SessionStore:
    return SessionStore(db, backoff=0.0)


@pytest.fixture
def orchestrator(
    content: InMemoryContentRepository,
    memory: MemoryManager,
    sessions: SessionStore,
    generator: Mock,
    config: EngineConfig,
    event_log: JSONLLogger,
) -> DialogueOrchestrator:
    return DialogueOrchestrator(
        content, memory, sessions, generator, config, event_log=event_log
    )
