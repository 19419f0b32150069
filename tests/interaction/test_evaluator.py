"""Tests for pass-condition evaluation."""

from unittest.mock import AsyncMock, Mock

import pytest

from flowquest.catalog import PassCondition, PassConditionType, Unit
from flowquest.errors import GenerationFailure
from flowquest.interaction import PassEvaluator, keyword_passed, parse_verdict
from flowquest.session import ConversationLog


class TestParseVerdict:
    @pytest.mark.parametrize("text", ["YES", "yes", "Yes, the learner ordered.", "  yes\nbecause"])
    def test_yes(self, text):
        assert parse_verdict(text) is True

    @pytest.mark.parametrize("text", ["NO", "No. They never asked.", "no"])
    def test_no(self, text):
        assert parse_verdict(text) is False

    @pytest.mark.parametrize("text", ["", "Maybe", "I think yes", "Yesterday they ordered", "nope"])
    def test_ambiguous(self, text):
        assert parse_verdict(text) is None


class TestKeywordPassed:
    def test_all_keywords_across_turns(self):
        assert keyword_passed(["thanks", "solved"], ["It is SOLVED", "ok, Thanks!"]) is True

    def test_missing_keyword(self):
        assert keyword_passed(["thanks", "solved"], ["thanks a lot"]) is False

    def test_order_independent(self):
        assert keyword_passed(["thanks", "solved"], ["thanks, solved"]) is True
        assert keyword_passed(["thanks", "solved"], ["solved, thanks"]) is True

    def test_substring_match(self):
        assert keyword_passed(["thank"], ["thanks"]) is True

    def test_empty_keywords_pass(self):
        assert keyword_passed([], ["anything"]) is True


def unit(condition: PassCondition) -> Unit:
    return Unit(id="u1", course_id="c", order=1, pass_condition=condition)


LOGS = [
    ConversationLog(role="assistant", content="Welcome! Say thanks when ready."),
    ConversationLog(role="user", content="ok thanks"),
]


class TestPassEvaluator:
    @pytest.mark.asyncio
    async def test_keyword_condition_ignores_assistant_text(self):
        generator = Mock()
        generator.judge = AsyncMock()
        evaluator = PassEvaluator(generator)

        verdict = await evaluator.evaluate(
            unit(PassCondition(PassConditionType.KEYWORD, ["thanks", "welcome"])), LOGS
        )

        assert verdict.passed is False
        assert verdict.keywords == ["thanks"]
        assert verdict.evaluation is None
        generator.judge.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_condition_yes(self):
        generator = Mock()
        generator.judge = AsyncMock(return_value="YES - the learner thanked Ana.")
        evaluator = PassEvaluator(generator)

        verdict = await evaluator.evaluate(
            unit(PassCondition(PassConditionType.LLM, ["learner says thanks"])), LOGS
        )

        assert verdict.passed is True
        assert verdict.evaluation == "YES - the learner thanked Ana."
        prompt = generator.judge.call_args.args[0]
        assert "Pass criteria: learner says thanks" in prompt
        assert "user: ok thanks" in prompt

    @pytest.mark.asyncio
    async def test_llm_ambiguous_fails_closed(self):
        generator = Mock()
        generator.judge = AsyncMock(return_value="Possibly, hard to tell.")

        verdict = await PassEvaluator(generator).evaluate(
            unit(PassCondition(PassConditionType.LLM, ["x"])), LOGS
        )

        assert verdict.passed is False
        assert verdict.evaluation == "Possibly, hard to tell."

    @pytest.mark.asyncio
    async def test_llm_failure_propagates(self):
        generator = Mock()
        generator.judge = AsyncMock(side_effect=GenerationFailure("timeout"))

        with pytest.raises(GenerationFailure):
            await PassEvaluator(generator).evaluate(
                unit(PassCondition(PassConditionType.LLM, ["x"])), LOGS
            )
