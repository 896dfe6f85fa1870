"""
Data models for storage layer.

Defines the usage log record and its NDJSON line format.
"""

import json
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class UsageStage(Enum):
    """Kind of usage log record."""
    INPUT = "input"
    USAGE = "usage"
    LOOP_BREAK = "loop_break"


# Python field name -> key written to the log line
_FIELD_KEYS = {
    "ts": "ts",
    "stage": "stage",
    "run_id": "runId",
    "session_id": "sessionId",
    "session_key": "sessionKey",
    "provider": "provider",
    "model_id": "modelId",
    "message_count": "messageCount",
    "total_text_chars": "totalTextChars",
    "max_message_text_chars": "maxMessageTextChars",
    "estimated_input_tokens": "estimatedInputTokens",
    "loop_warning": "loopWarning",
    "input_tokens": "inputTokens",
    "output_tokens": "outputTokens",
    "cache_read_tokens": "cacheReadTokens",
    "cache_write_tokens": "cacheWriteTokens",
    "error": "error",
}

# Always-present size fields and optional provider token counts
_COUNT_FIELDS = {"message_count", "total_text_chars", "max_message_text_chars", "estimated_input_tokens"}
_TOKEN_FIELDS = {"input_tokens", "output_tokens", "cache_read_tokens", "cache_write_tokens"}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class UsageLogEvent:
    """Immutable record of one LLM call observation.

    Append-only: one event becomes exactly one line of the usage log.
    Fields left as None are omitted from the line.
    """
    ts: str
    stage: UsageStage
    run_id: Optional[str] = None
    session_id: Optional[str] = None
    session_key: Optional[str] = None
    provider: Optional[str] = None
    model_id: Optional[str] = None
    message_count: int = 0
    total_text_chars: int = 0
    max_message_text_chars: int = 0
    estimated_input_tokens: int = 0
    loop_warning: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    cache_read_tokens: Optional[int] = None
    cache_write_tokens: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Log-line representation with camelCase keys."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, UsageStage):
                value = value.value
            data[_FIELD_KEYS[f.name]] = value
        return data

    def to_json_line(self) -> str:
        """Serialize to a single newline-terminated JSON line.

        Raises:
            TypeError, ValueError: If a field cannot be serialized
        """
        return json.dumps(self.to_dict(), ensure_ascii=False, allow_nan=False) + "\n"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UsageLogEvent":
        """Parse a decoded log line.

        Raises:
            ValueError: If the stage or timestamp is missing or invalid, or a
                known field has the wrong type
        """
        ts = data.get("ts")
        if not isinstance(ts, str):
            raise ValueError("event is missing 'ts'")
        try:
            stage = UsageStage(data.get("stage"))
        except ValueError:
            raise ValueError(f"unknown stage: {data.get('stage')!r}")

        values: Dict[str, Any] = {"ts": ts, "stage": stage}
        for name, key in _FIELD_KEYS.items():
            if name in values or key not in data:
                continue
            value = data[key]
            if value is None and name not in _COUNT_FIELDS:
                continue
            if name in _COUNT_FIELDS or name in _TOKEN_FIELDS:
                if not isinstance(value, int) or isinstance(value, bool):
                    raise ValueError(f"'{key}' must be an integer, got {value!r}")
            elif not isinstance(value, str):
                raise ValueError(f"'{key}' must be a string, got {value!r}")
            values[name] = value
        return cls(**values)
