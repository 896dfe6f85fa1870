"""
Environment-driven settings.

Resolves the activation switch, log path and optional caps from environment
variables. Malformed values fall back to defaults instead of raising.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_USAGE_DEBUG = "LLM_USAGE_DEBUG"
ENV_USAGE_DEBUG_FILE = "LLM_USAGE_DEBUG_FILE"
ENV_STATE_DIR = "LLM_USAGE_STATE_DIR"
ENV_MAX_HISTORY_TURNS = "LLM_MAX_HISTORY_TURNS"
ENV_MAX_TOOL_RESULT_CHARS = "LLM_MAX_TOOL_RESULT_CHARS"
ENV_MAX_MESSAGE_CHARS = "LLM_MAX_MESSAGE_CHARS"
ENV_MAX_MESSAGES = "LLM_MAX_MESSAGES"

DEFAULT_STATE_DIRNAME = ".llm-usage-guard"
USAGE_LOG_FILENAME = "llm_usage.ndjson"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class LoggerConfig:
    """Resolved usage logger settings."""
    enabled: bool
    file_path: Path


def get_environ(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if env is None else env


def parse_boolean_value(raw: Optional[str]) -> Optional[bool]:
    """Parse common boolean spellings, returning None when unrecognized."""
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return None


def parse_positive_int(raw: Optional[str]) -> Optional[int]:
    """Parse a positive integer, returning None for blank, invalid or <= 0."""
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer setting value %r", raw)
        return None
    return value if value > 0 else None


def resolve_state_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    override = (get_environ(env).get(ENV_STATE_DIR) or "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_STATE_DIRNAME


def resolve_log_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Log file path: explicit override, else <state-dir>/logs/llm_usage.ndjson."""
    override = (get_environ(env).get(ENV_USAGE_DEBUG_FILE) or "").strip()
    if override:
        return Path(override).expanduser()
    return resolve_state_dir(env) / "logs" / USAGE_LOG_FILENAME


def resolve_logger_config(env: Optional[Mapping[str, str]] = None) -> LoggerConfig:
    environ = get_environ(env)
    enabled = parse_boolean_value(environ.get(ENV_USAGE_DEBUG)) or False
    return LoggerConfig(enabled=enabled, file_path=resolve_log_path(environ))


def resolve_history_ceiling(env: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Global hard ceiling on history turns, if configured."""
    return parse_positive_int(get_environ(env).get(ENV_MAX_HISTORY_TURNS))
