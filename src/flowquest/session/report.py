"""Progress reports for a session."""

from dataclasses import dataclass, field
from typing import Any

from ..catalog.models import DEFAULT_MAX_TURNS, Unit
from .models import Session, UnitStatus


@dataclass
class UnitReport:
    """Outcome of one unit, as shown to a learner or instructor."""

    unit_id: str
    title: str
    status: str
    turn_count: int
    max_turns: int
    important_keywords: list[str] = field(default_factory=list)
    evaluations: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "unit_id": self.unit_id,
            "title": self.title,
            "status": self.status,
            "turn_count": self.turn_count,
            "max_turns": self.max_turns,
            "important_keywords": list(self.important_keywords),
            "evaluations": self.evaluations,
        }


@dataclass
class SessionReport:
    """Summary of a learner's run through a course."""

    activity_id: str
    user_id: str
    session_id: str
    user_name: str
    summary: str
    generated_at: str | None
    units: list[UnitReport] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for u in self.units if u.status == UnitStatus.PASSED.value)

    @property
    def failed(self) -> int:
        return sum(1 for u in self.units if u.status == UnitStatus.FAILED.value)

    @property
    def completed(self) -> bool:
        return bool(self.summary)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "activity_id": self.activity_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "user_name": self.user_name,
            "summary": self.summary,
            "generated_at": self.generated_at,
            "passed": self.passed,
            "failed": self.failed,
            "completed": self.completed,
            "units": [u.to_dict() for u in self.units],
        }

    def format(self) -> str:
        """Render the report as plain text."""
        name = self.user_name or self.user_id
        lines = [f"Session {self.session_id} ({name}) in activity {self.activity_id}"]
        for unit in self.units:
            line = f"  [{unit.status:>11}] {unit.title or unit.unit_id}: {unit.turn_count}/{unit.max_turns} turns"
            if unit.important_keywords:
                line += f", keywords: {', '.join(unit.important_keywords)}"
            lines.append(line)
        lines.append(f"Passed {self.passed}, failed {self.failed} of {len(self.units)} units")
        if self.summary:
            lines.append(self.summary)
        return "\n".join(lines)


def build_report(
    session: Session, units: list[Unit], default_max_turns: int = DEFAULT_MAX_TURNS
) -> SessionReport:
    """Build a report covering every unit of the course.

    Units the learner has not reached are listed as "not started"; a unit
    with logs but no outcome is "in progress".

    Args:
        session: The stored session.
        units: The course's units in catalog order.
        default_max_turns: Turn budget for units that don't declare one.

    Returns:
        The report.
    """
    reports = []
    for unit in units:
        result = session.unit_result(unit.id)
        if result is None:
            status = "not started"
            turns, keywords, evaluations = 0, [], 0
        else:
            if result.status is not None:
                status = result.status.value
            elif result.conversation_logs:
                status = "in progress"
            else:
                status = "not started"
            turns = result.turns
            keywords = list(result.important_keywords)
            evaluations = len(result.evaluation_results)

        reports.append(
            UnitReport(
                unit_id=unit.id,
                title=unit.title,
                status=status,
                turn_count=turns,
                max_turns=unit.turn_limit(default_max_turns),
                important_keywords=keywords,
                evaluations=evaluations,
            )
        )

    return SessionReport(
        activity_id=session.activity_id,
        user_id=session.user_id,
        session_id=session.session_id,
        user_name=session.user_name or "",
        summary=session.summary or "",
        generated_at=session.generated_at,
        units=reports,
    )
