"""Text-generation client implementations.

This module defines the TextGenerator Protocol the engine depends on, and
a Groq-backed implementation of it. The same capability serves persona
replies and every judging call (relevance, pass checks, consolidation);
only the prompts differ.
"""

import asyncio
from typing import Any, Protocol

from groq import AsyncGroq

from ..errors import GenerationFailure

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_JUDGE_MODEL = "llama-3.1-8b-instant"


class TextGenerator(Protocol):
    """Capability the orchestrator uses to talk to a language model."""

    async def generate(
        self,
        system_prompt: str,
        history: list[dict[str, str]],
        user_message: str,
    ) -> str:
        """Produce the persona's reply to a user message."""
        ...

    async def judge(self, prompt: str, system: str | None = None) -> str:
        """Answer a judging prompt with free text."""
        ...


class GroqTextGenerator:
    """TextGenerator implementation that wraps AsyncGroq.

    Every failure, including a timeout, surfaces as GenerationFailure so
    the caller can abort the turn as a whole. Cancellation propagates
    unchanged.

    Example:
        from groq import AsyncGroq
        from flowquest.llm import GroqTextGenerator

        groq = AsyncGroq(api_key="...")
        llm = GroqTextGenerator(groq, reply_model="llama-3.3-70b-versatile")
        reply = await llm.generate("You are Ana.", [], "Hello")
    """

    def __init__(
        self,
        client: AsyncGroq,
        reply_model: str = DEFAULT_MODEL,
        judge_model: str = DEFAULT_JUDGE_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 800,
        judge_max_tokens: int = 1024,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the Groq wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            reply_model: Model for persona replies.
            judge_model: Model for judging prompts.
            temperature: Sampling temperature for replies.
            max_tokens: Token cap for replies.
            judge_max_tokens: Token cap for judging prompts.
            timeout: Seconds before a call is abandoned.
        """
        self._client = client
        self._reply_model = reply_model
        self._judge_model = judge_model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._judge_max_tokens = judge_max_tokens
        self._timeout = timeout

    @property
    def model(self) -> str:
        """Return the model used for replies."""
        return self._reply_model

    @property
    def judge_model(self) -> str:
        """Return the model used for judging."""
        return self._judge_model

    async def generate(
        self,
        system_prompt: str,
        history: list[dict[str, str]],
        user_message: str,
    ) -> str:
        """Produce the persona's reply.

        Args:
            system_prompt: The composed persona/unit prompt.
            history: Prior messages as {"role", "content"} dicts.
            user_message: The learner's new message.

        Returns:
            The reply text.

        Raises:
            GenerationFailure: If the call fails or times out.
        """
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        messages.append({"role": "user", "content": user_message})

        return await self._complete(
            model=self._reply_model,
            messages=messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

    async def judge(self, prompt: str, system: str | None = None) -> str:
        """Answer a judging prompt.

        Args:
            prompt: The judging prompt.
            system: Optional system prompt to set context.

        Returns:
            The raw model answer.

        Raises:
            GenerationFailure: If the call fails or times out.
        """
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": prompt})

        return await self._complete(
            model=self._judge_model,
            messages=messages,
            max_tokens=self._judge_max_tokens,
        )

    async def _complete(self, **kwargs: Any) -> str:
        """Run one chat completion under the configured timeout."""
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailure(
                f"{kwargs['model']} timed out after {self._timeout}s"
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise GenerationFailure(f"{kwargs['model']} call failed: {e}") from e

        return (response.choices[0].message.content or "").strip()
