"""Lexical keyword extraction for memory tags."""

MAX_KEYWORDS = 5
MIN_KEYWORD_LENGTH = 4


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Extract simple tags from free text.

    Lowercases the text, splits on whitespace and keeps the first tokens
    longer than three characters.

    Args:
        text: The text to tag.
        limit: Maximum number of keywords.

    Returns:
        Up to ``limit`` keywords in order of appearance.
    """
    words = [w for w in text.lower().split() if len(w) >= MIN_KEYWORD_LENGTH]
    return words[:limit]


def exchange_content(message: str, reply: str) -> str:
    """Render one user/assistant exchange as memory text."""
    return f"User said: {message}\nYou replied: {reply}"
