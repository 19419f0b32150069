"""Prompt builders for the persona and the pass-condition judge."""

from ..catalog.models import CoursePackage, Persona, Unit
from ..session.models import ConversationLog

FALLBACK_PROMPT = "You are a learning assistant helping the learner complete their exercises."

CLOSING_INSTRUCTION = (
    "Stay in character: reply in your persona's personality and keep a "
    "consistent stance throughout the conversation."
)

PASS_CHECK_PROMPT = """Decide whether the following conversation meets the pass criteria.

Pass criteria: {criteria}

Conversation:
{conversation}

Answer only "YES" or "NO", followed by a short reason."""


def build_system_prompt(
    persona: Persona | None,
    unit: Unit | None,
    course: CoursePackage | None,
    memory_block: str = "",
) -> str:
    """Build the persona's system prompt for a unit.

    Args:
        persona: The character the learner talks to.
        unit: The unit being played.
        course: The course the unit belongs to.
        memory_block: Optional formatted hot memories. Callers pass it only
            when there is a user message to answer.

    Returns:
        Complete system prompt string.
    """
    if persona is None:
        return FALLBACK_PROMPT

    prompt = f"You are {persona.name}."
    if persona.background:
        prompt += f" Background: {persona.background}"
    if persona.tone:
        prompt += f" Tone: {persona.tone}"
    if persona.voice:
        prompt += f" Speaking style: {persona.voice}"

    if course is not None:
        prompt += f"\n\nCurrent course: {course.title}"
        if course.description:
            prompt += f"\nCourse description: {course.description}"

    if unit is not None:
        if unit.agent_role:
            prompt += f"\nYour role in this unit: {unit.agent_role}"
        if unit.user_role:
            prompt += f"\nThe learner's role: {unit.user_role}"
        if unit.behavior_prompt:
            prompt += f"\nBehavior guidelines: {unit.behavior_prompt}"

    if memory_block.strip():
        prompt += "\n\n" + memory_block

    return prompt + "\n\n" + CLOSING_INSTRUCTION


def build_pass_check_prompt(criteria: list[str], logs: list[ConversationLog]) -> str:
    """Build the judge prompt for an llm pass condition."""
    conversation = "\n".join(f"{log.role}: {log.content}" for log in logs)
    return PASS_CHECK_PROMPT.format(criteria=", ".join(criteria), conversation=conversation)
