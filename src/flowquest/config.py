"""Engine configuration loader.

Loads configuration from ~/.flowquest/config.json and environment
variables, and provides defaults for everything else.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .llm.client import DEFAULT_JUDGE_MODEL, DEFAULT_MODEL

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".flowquest"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"


@dataclass
class EngineConfig:
    """Configuration for the interaction engine.

    Attributes:
        reply_model: Model used to generate persona replies.
        judge_model: Model used for relevance, pass and consolidation judging.
        temperature: Sampling temperature for persona replies.
        max_tokens: Token cap for persona replies.
        judge_max_tokens: Token cap for judge calls.
        llm_timeout: Seconds before a model call is abandoned.
        history_limit: Number of unit logs replayed as chat history.
        prompt_memory_limit: Hot memories included in the system prompt.
        min_hot_target: Floor of the hot-memory consolidation target.
        default_max_turns: Turn budget for units that don't declare one.
        persist_attempts: Attempts for a session write before giving up.
        persist_backoff: Base delay in seconds between write attempts.
        db_path: SQLite database holding sessions and dynamic memories.
        content_dir: Directory with agents/, courses/, units/, activities/.
        log_dir: Directory for the JSONL event log.
    """

    reply_model: str = DEFAULT_MODEL
    judge_model: str = DEFAULT_JUDGE_MODEL
    temperature: float = 0.7
    max_tokens: int = 800
    judge_max_tokens: int = 1024
    llm_timeout: float = 30.0
    history_limit: int = 10
    prompt_memory_limit: int = 5
    min_hot_target: int = 3
    default_max_turns: int = 10
    persist_attempts: int = 5
    persist_backoff: float = 0.05
    db_path: Path | None = None
    content_dir: Path | None = None
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.db_path is None:
            self.db_path = DEFAULT_HOME / "flowquest.db"

        if self.content_dir is None:
            self.content_dir = Path.cwd() / "content"

        if self.log_dir is None:
            self.log_dir = DEFAULT_HOME / "logs"

        if self.min_hot_target < 1:
            raise ValueError("min_hot_target must be at least 1")

        if self.default_max_turns < 1:
            raise ValueError("default_max_turns must be at least 1")

        if self.persist_attempts < 1:
            raise ValueError("persist_attempts must be at least 1")

        if self.llm_timeout <= 0:
            raise ValueError("llm_timeout must be positive")


_INT_FIELDS = (
    "max_tokens",
    "judge_max_tokens",
    "history_limit",
    "prompt_memory_limit",
    "min_hot_target",
    "default_max_turns",
    "persist_attempts",
)
_FLOAT_FIELDS = ("temperature", "llm_timeout", "persist_backoff")
_PATH_FIELDS = ("db_path", "content_dir", "log_dir")


def load_config(config_path: Path | None = None) -> EngineConfig:
    """Load EngineConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "engine": {
        "reply_model": "llama-3.3-70b-versatile",
        "llm_timeout": 20,
        "db_path": "~/.flowquest/flowquest.db"
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        EngineConfig instance with loaded values.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return EngineConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return EngineConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return EngineConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return EngineConfig()

    return _parse_config(data.get("engine", {}))


def _parse_config(data: Any) -> EngineConfig:
    """Parse the engine section into EngineConfig.

    Values of the wrong type are ignored and fall back to defaults.
    """
    if not isinstance(data, dict):
        return EngineConfig()

    values: dict[str, Any] = {}

    for name in ("reply_model", "judge_model"):
        value = data.get(name)
        if isinstance(value, str) and value.strip():
            values[name] = value.strip()

    for name in _INT_FIELDS:
        value = data.get(name)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            values[name] = value

    for name in _FLOAT_FIELDS:
        value = data.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
            values[name] = float(value)

    for name in _PATH_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and value.strip():
            values[name] = Path(value).expanduser()

    try:
        return EngineConfig(**values)
    except ValueError as e:
        logger.warning("Invalid engine config: %s. Using defaults.", e)
        return EngineConfig()


def config_from_env(base: EngineConfig | None = None) -> EngineConfig:
    """Overlay FLOWQUEST_* environment variables on a config.

    Args:
        base: Config to start from. Loaded from the default file if None.

    Returns:
        A new EngineConfig with environment overrides applied.
    """
    config = base or load_config()
    values = dict(config.__dict__)

    model = os.getenv("FLOWQUEST_MODEL") or os.getenv("GROQ_MODEL")
    if model:
        values["reply_model"] = model

    judge_model = os.getenv("FLOWQUEST_JUDGE_MODEL")
    if judge_model:
        values["judge_model"] = judge_model

    timeout = os.getenv("FLOWQUEST_LLM_TIMEOUT")
    if timeout:
        try:
            values["llm_timeout"] = float(timeout)
        except ValueError:
            logger.warning("Ignoring invalid FLOWQUEST_LLM_TIMEOUT=%r", timeout)

    for env_name, field_name in (
        ("FLOWQUEST_DB", "db_path"),
        ("FLOWQUEST_CONTENT_DIR", "content_dir"),
        ("FLOWQUEST_LOG_DIR", "log_dir"),
    ):
        value = os.getenv(env_name)
        if value:
            values[field_name] = Path(value).expanduser()

    return EngineConfig(**values)
