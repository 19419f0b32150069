"""Tests for the Groq text generator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from flowquest.errors import GenerationFailure
from flowquest.llm import GroqTextGenerator
from flowquest.llm.client import DEFAULT_JUDGE_MODEL, DEFAULT_MODEL


def mock_groq(content: str | None = "LLM response") -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content

    groq = MagicMock()
    groq.chat.completions.create = AsyncMock(return_value=response)
    return groq


class TestGroqTextGenerator:
    """Tests for the GroqTextGenerator wrapper."""

    def test_default_models(self) -> None:
        llm = GroqTextGenerator(MagicMock())

        assert llm.model == DEFAULT_MODEL
        assert llm.judge_model == DEFAULT_JUDGE_MODEL

    @pytest.mark.asyncio
    async def test_generate_builds_messages(self) -> None:
        """System prompt first, then history, then the new message."""
        groq = mock_groq("Hola!")
        llm = GroqTextGenerator(groq, reply_model="reply-model", temperature=0.2, max_tokens=50)

        result = await llm.generate(
            "You are Ana.",
            [{"role": "assistant", "content": "Hi!"}, {"role": "user", "content": "Hey"}],
            "How are you?",
        )

        assert result == "Hola!"
        groq.chat.completions.create.assert_called_once_with(
            model="reply-model",
            messages=[
                {"role": "system", "content": "You are Ana."},
                {"role": "assistant", "content": "Hi!"},
                {"role": "user", "content": "Hey"},
                {"role": "user", "content": "How are you?"},
            ],
            temperature=0.2,
            max_tokens=50,
        )

    @pytest.mark.asyncio
    async def test_judge_with_system(self) -> None:
        groq = mock_groq("  YES  ")
        llm = GroqTextGenerator(groq, judge_model="judge-model", judge_max_tokens=10)

        result = await llm.judge("Did they pass?", system="You grade answers")

        assert result == "YES"
        kwargs = groq.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "judge-model"
        assert kwargs["max_tokens"] == 10
        assert kwargs["messages"] == [
            {"role": "system", "content": "You grade answers"},
            {"role": "user", "content": "Did they pass?"},
        ]

    @pytest.mark.asyncio
    async def test_judge_without_system(self) -> None:
        groq = mock_groq()
        await GroqTextGenerator(groq).judge("prompt")

        messages = groq.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_none_content_becomes_empty(self) -> None:
        llm = GroqTextGenerator(mock_groq(None))

        assert await llm.judge("prompt") == ""

    @pytest.mark.asyncio
    async def test_api_error_raises_generation_failure(self) -> None:
        groq = MagicMock()
        groq.chat.completions.create = AsyncMock(side_effect=RuntimeError("503"))
        llm = GroqTextGenerator(groq)

        with pytest.raises(GenerationFailure, match="503"):
            await llm.generate("system", [], "hi")

    @pytest.mark.asyncio
    async def test_timeout_raises_generation_failure(self) -> None:
        async def slow(**kwargs):
            await asyncio.sleep(1)

        groq = MagicMock()
        groq.chat.completions.create = slow
        llm = GroqTextGenerator(groq, timeout=0.01)

        with pytest.raises(GenerationFailure, match="timed out"):
            await llm.judge("prompt")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        groq = MagicMock()
        groq.chat.completions.create = AsyncMock(side_effect=asyncio.CancelledError())
        llm = GroqTextGenerator(groq)

        with pytest.raises(asyncio.CancelledError):
            await llm.generate("system", [], "hi")
