"""
Token estimation and usage totals.

Provides a deterministic size-to-token heuristic and the token counts
reported back by a provider.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional


# Conservative ratio for English prose; no tokenizer is invoked.
CHARS_PER_TOKEN = 4


def estimate_tokens(char_count: int) -> int:
    """Estimate the token count for ``char_count`` characters of text.

    Args:
        char_count: Number of text characters (negative values clamp to 0)

    Returns:
        ceil(char_count / 4)
    """
    if char_count <= 0:
        return 0
    return math.ceil(char_count / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts returned by a provider for one call.

    Any field may be None when the provider did not report it.
    """
    input: Optional[int] = None
    output: Optional[int] = None
    cache_read: Optional[int] = None
    cache_write: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output), treating missing counts as 0."""
        return (self.input or 0) + (self.output or 0)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TokenUsage":
        """Build usage totals from a loosely shaped mapping.

        Accepts both camelCase (``cacheRead``) and snake_case (``cache_read``)
        keys. Non-integer values are ignored.
        """
        return cls(
            input=_as_count(data.get("input")),
            output=_as_count(data.get("output")),
            cache_read=_as_count(_first_present(data, "cacheRead", "cache_read")),
            cache_write=_as_count(_first_present(data, "cacheWrite", "cache_write")),
        )


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_count(value: Any) -> Optional[int]:
    # bool is an int subclass but never a token count
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value
