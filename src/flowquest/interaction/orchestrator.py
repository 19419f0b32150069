"""Dialogue orchestrator: advances a learner through a course's units."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from ..catalog.models import Unit
from ..catalog.repository import ActivityContent, ContentRepository, resolve_activity
from ..config import EngineConfig
from ..errors import FlowQuestError, ValidationError
from ..llm import TextGenerator
from ..logging import JSONLLogger, get_logger
from ..memory.manager import MemoryManager, MemoryUpdate, MemoryWorkingSet
from ..memory.models import MemoryEntry, MemoryScope, utc_now
from ..session.locks import SessionLocks
from ..session.models import (
    ASSISTANT,
    USER,
    ConversationLog,
    Session,
    SessionKey,
    UnitResult,
    UnitStatus,
)
from ..session.store import SessionStore
from .evaluator import PassEvaluator
from .prompt import build_system_prompt

DEFAULT_USER_ID = "default_user"

TURN_LIMIT_NOTICE = (
    "This unit has reached its maximum number of turns. "
    "Moving on to the next unit, if there is one."
)
COURSE_COMPLETED_NOTICE = "This course is already complete. Start a new session to play it again."


@dataclass
class ChatResult:
    """Outcome of one chat turn.

    Attributes:
        assistant_reply: The persona's reply, or a notice when no reply
            was generated.
        session: The session as stored after the turn.
        transitioned: True if the turn moved the learner to the next unit.
        course_completed: True if the course is finished.
    """

    assistant_reply: str
    session: Session | None
    transitioned: bool = False
    course_completed: bool = False


@dataclass
class _Transition:
    results: list[UnitResult] = field(default_factory=list)
    summary: str | None = None
    transitioned: bool = False
    completed: bool = False
    next_unit: Unit | None = None


def _require(**values: str | None) -> None:
    missing = [name for name, value in values.items() if not value or not value.strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


class DialogueOrchestrator:
    """Runs initialize and chat for learner sessions.

    A turn reads the session, asks the model for everything it needs
    (relevance, reply, consolidation, pass verdict) and only then writes,
    committing memories and the session update in one transaction. If any
    model call fails nothing is written and the turn can be retried.
    Turns on the same session are serialized by a per-session lock.
    """

    def __init__(
        self,
        content: ContentRepository,
        memory: MemoryManager,
        sessions: SessionStore,
        generator: TextGenerator,
        config: EngineConfig | None = None,
        locks: SessionLocks | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            content: Source of activities, personas, courses and units.
            memory: Memory manager for the persona's hot and cold tiers.
            sessions: Session store. Must share its database with the
                memory store so a turn commits atomically.
            generator: Capability used for replies and pass judging.
            config: Engine configuration.
            locks: Per-session locks; pass a shared instance when several
                orchestrators serve the same sessions.
            event_log: Structured event log; defaults to the global one.
        """
        self.content = content
        self.memory = memory
        self.sessions = sessions
        self.generator = generator
        self.config = config or EngineConfig()
        self.locks = locks or SessionLocks()
        self.event_log = event_log or get_logger()
        self.evaluator = PassEvaluator(generator)

    async def initialize(
        self,
        activity_id: str,
        session_id: str,
        user_id: str = DEFAULT_USER_ID,
        user_name: str = "",
    ) -> Session:
        """Create or resume a session and seed the first unit's intro.

        Calling it again is harmless: the intro is only seeded while the
        first unit has no logs.

        Args:
            activity_id: The activity to play.
            session_id: Human session code.
            user_id: The learner.
            user_name: Display name; an empty name keeps the stored one.

        Returns:
            The stored session.

        Raises:
            ValidationError: If an identifier is missing.
            NotFoundError: If the activity, persona, course or units are missing.
            PersistenceConflict: If the write kept losing races.
        """
        _require(activity_id=activity_id, session_id=session_id, user_id=user_id)
        key = SessionKey(activity_id, session_id=session_id, user_id=user_id)

        async with self.locks.hold(key):
            content = resolve_activity(self.content, activity_id)
            existing = self.sessions.find_one(key)
            working = self.memory.load_working_set(self._baseline(content))

            first = content.units[0]
            seed = self._seed_intro(content, first, existing, working)
            incoming = Session(
                activity_id=key.activity_id,
                user_id=key.user_id,
                session_id=key.session_id,
                user_name=user_name or None,
                unit_results=[seed] if seed else [],
            )
            session = await self.sessions.upsert_async(key, incoming)

        self.event_log.log(
            "session_initialized",
            session=str(key),
            unit_id=first.id,
            seeded=seed is not None,
        )
        return session

    async def chat(
        self,
        activity_id: str,
        session_id: str,
        user_id: str,
        message: str,
        user_name: str = "",
    ) -> ChatResult:
        """Process one learner message.

        Args:
            activity_id: The activity being played.
            session_id: Human session code.
            user_id: The learner.
            message: The learner's message.
            user_name: Display name; an empty name keeps the stored one.

        Returns:
            The reply and the session after the turn.

        Raises:
            ValidationError: If an identifier or the message is missing.
            NotFoundError: If the activity, persona, course or units are missing.
            GenerationFailure: If a model call fails. Nothing is written.
            PersistenceConflict: If the write kept losing races.
        """
        _require(
            activity_id=activity_id, session_id=session_id, user_id=user_id, message=message
        )
        key = SessionKey(activity_id, session_id=session_id, user_id=user_id)

        async with self.locks.hold(key):
            start = time.perf_counter()
            try:
                return await self._chat(key, message, user_name or None)
            except FlowQuestError as e:
                self.event_log.log_turn_failed(
                    str(key),
                    f"{type(e).__name__}: {e}",
                    duration_ms=(time.perf_counter() - start) * 1000,
                )
                raise

    async def _chat(self, key: SessionKey, message: str, user_name: str | None) -> ChatResult:
        content = resolve_activity(self.content, key.activity_id)
        existing = self.sessions.find_one(key)

        unit = self._current_unit(content, existing)
        if unit is None:
            return ChatResult(
                assistant_reply=COURSE_COMPLETED_NOTICE,
                session=existing,
                course_completed=True,
            )

        result = existing.unit_result(unit.id) if existing else None
        turns = result.turns if result else 0
        max_turns = unit.turn_limit(self.config.default_max_turns)
        scope = MemoryScope(
            agent_id=content.persona.id,
            user_id=key.user_id,
            activity_id=key.activity_id,
            session_id=key.session_id,
        )
        working = self.memory.load_working_set(self._baseline(content), scope)

        self.event_log.log("turn_start", session=str(key), unit_id=unit.id, turn=turns + 1)

        if turns >= max_turns:
            return await self._close_at_limit(key, content, unit, existing, working, user_name)

        promoted = await self.memory.promote(working, message)
        if promoted:
            self.event_log.log(
                "promotion", session=str(key), unit_id=unit.id, count=len(promoted)
            )

        memory_block = self.memory.format_for_prompt(
            working.hot, limit=self.config.prompt_memory_limit
        )
        system_prompt = build_system_prompt(
            content.persona, unit, content.course, memory_block
        )
        prior_logs = list(result.conversation_logs) if result else []
        recent = prior_logs[-self.config.history_limit:] if self.config.history_limit > 0 else []
        history = [{"role": log.role, "content": log.content} for log in recent]

        reply = await self.generator.generate(system_prompt, history, message)

        snapshot = working.snapshot()
        new_logs = [
            ConversationLog(
                role=USER,
                content=message,
                timestamp=utc_now(),
                system_prompt=system_prompt,
                memory_snapshot=snapshot,
            ),
            ConversationLog(
                role=ASSISTANT,
                content=reply,
                timestamp=utc_now(),
                memory_snapshot=snapshot,
            ),
        ]
        turn_count = turns + 1

        update = self.memory.record_exchange(working, scope, message, reply)
        consolidated = await self.memory.consolidate(working, update, message, reply)
        if consolidated:
            self.event_log.log(
                "consolidation",
                session=str(key),
                unit_id=unit.id,
                count=len(consolidated),
                base_hot_count=working.base_hot_count,
            )

        verdict = await self.evaluator.evaluate(unit, [*prior_logs, *new_logs])

        delta = UnitResult(
            unit_id=unit.id,
            turn_count=turn_count,
            important_keywords=verdict.keywords,
            standard_pass_rules=list(unit.pass_condition.value),
            evaluation_results=[verdict.evaluation] if verdict.evaluation is not None else [],
            conversation_logs=new_logs,
        )

        transition = _Transition()
        if verdict.passed:
            if unit.outro_message:
                delta.conversation_logs.append(
                    ConversationLog(
                        role=ASSISTANT,
                        content=unit.outro_message,
                        timestamp=utc_now(),
                        system_prompt=build_system_prompt(
                            content.persona, unit, content.course
                        ),
                        memory_snapshot=working.snapshot(),
                    )
                )
            delta.status = UnitStatus.PASSED
            transition = self._transition(content, unit, existing, working)
        elif turn_count >= max_turns:
            delta.status = UnitStatus.FAILED
            transition = self._transition(content, unit, existing, working)

        incoming = Session(
            activity_id=key.activity_id,
            user_id=key.user_id,
            session_id=key.session_id,
            user_name=user_name,
            summary=transition.summary,
            unit_results=[delta, *transition.results],
        )
        session = await self._commit(key, incoming, update)

        if delta.status is not None:
            self._log_close(key, unit, delta.status, transition, turn_count)

        return ChatResult(
            assistant_reply=reply,
            session=session,
            transitioned=transition.transitioned,
            course_completed=transition.completed,
        )

    async def _close_at_limit(
        self,
        key: SessionKey,
        content: ActivityContent,
        unit: Unit,
        existing: Session | None,
        working: MemoryWorkingSet,
        user_name: str | None,
    ) -> ChatResult:
        """Fail a unit whose turn budget is spent, without generating a reply."""
        self.event_log.log("turn_limit", session=str(key), unit_id=unit.id)

        delta = UnitResult(
            unit_id=unit.id,
            status=UnitStatus.FAILED,
            standard_pass_rules=list(unit.pass_condition.value),
        )
        transition = self._transition(content, unit, existing, working)
        incoming = Session(
            activity_id=key.activity_id,
            user_id=key.user_id,
            session_id=key.session_id,
            user_name=user_name,
            summary=transition.summary,
            unit_results=[delta, *transition.results],
        )
        session = await self._commit(key, incoming)

        result = existing.unit_result(unit.id) if existing else None
        self._log_close(key, unit, UnitStatus.FAILED, transition, result.turns if result else 0)

        return ChatResult(
            assistant_reply=TURN_LIMIT_NOTICE,
            session=session,
            transitioned=transition.transitioned,
            course_completed=transition.completed,
        )

    async def _commit(
        self, key: SessionKey, incoming: Session, update: MemoryUpdate | None = None
    ) -> Session:
        """Write a turn's memories and session update in one transaction."""

        def work() -> Session:
            if update is not None:
                self.memory.commit(update)
            return self.sessions.upsert(key, incoming)

        return await self.sessions.atomic_async(work, key)

    def _baseline(self, content: ActivityContent) -> list[MemoryEntry]:
        """Persona memories followed by activity memories."""
        return [*content.persona.memories, *content.activity.memories]

    def _current_unit(self, content: ActivityContent, session: Session | None) -> Unit | None:
        """Find the unit a message belongs to.

        The current unit is the furthest unit in catalog order that has
        logs, or the first unit if none has. If it is already closed the
        learner has moved on to the following unit; None means the course
        is finished.
        """
        index = 0
        if session is not None:
            started = [
                content.unit_index(r.unit_id)
                for r in session.unit_results
                if r.conversation_logs
            ]
            started = [i for i in started if i >= 0]
            if started:
                index = max(started)

        unit: Unit | None = content.units[index]
        while unit is not None and session is not None:
            result = session.unit_result(unit.id)
            if result is None or result.is_active:
                break
            unit = content.next_unit(unit.id)
        return unit

    def _seed_intro(
        self,
        content: ActivityContent,
        unit: Unit,
        session: Session | None,
        working: MemoryWorkingSet,
    ) -> UnitResult | None:
        """Build the intro log of a unit that hasn't started yet.

        Returns:
            A unit result carrying the intro, or None if the unit has no
            intro or already has logs.
        """
        if not unit.intro_message:
            return None

        result = session.unit_result(unit.id) if session else None
        if result is not None and result.conversation_logs:
            return None

        intro = ConversationLog(
            role=ASSISTANT,
            content=unit.intro_message,
            timestamp=utc_now(),
            system_prompt=build_system_prompt(content.persona, unit, content.course),
            memory_snapshot=working.snapshot(),
        )
        return UnitResult(
            unit_id=unit.id,
            standard_pass_rules=list(unit.pass_condition.value),
            conversation_logs=[intro],
        )

    def _transition(
        self,
        content: ActivityContent,
        unit: Unit,
        session: Session | None,
        working: MemoryWorkingSet,
    ) -> _Transition:
        """Move past a closed unit: seed the next one or complete the course."""
        next_unit = content.next_unit(unit.id)
        if next_unit is None:
            return _Transition(summary=f"Course completed on {utc_now()}", completed=True)

        seed = self._seed_intro(content, next_unit, session, working)
        return _Transition(
            results=[seed] if seed else [],
            transitioned=True,
            next_unit=next_unit,
        )

    def _log_close(
        self,
        key: SessionKey,
        unit: Unit,
        status: UnitStatus,
        transition: _Transition,
        turn: int,
    ) -> None:
        event = "unit_passed" if status is UnitStatus.PASSED else "unit_failed"
        self.event_log.log(event, session=str(key), unit_id=unit.id, turn=turn)
        self.event_log.log_transition(
            str(key),
            unit.id,
            transition.next_unit.id if transition.next_unit else None,
            status.value,
        )
        if transition.completed:
            self.event_log.log("course_completed", session=str(key), unit_id=unit.id)
