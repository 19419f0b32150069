"""Text-generation capability used for replies and judging."""

from .client import GroqTextGenerator, TextGenerator

__all__ = ["GroqTextGenerator", "TextGenerator"]
