"""
Message size analysis.

Extracts textual size metrics from a message collection for usage events
and loop detection.
"""

import logging
from dataclasses import dataclass
from typing import Any

from .content import as_message_list, message_content

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageStats:
    """Text size metrics for one message collection."""
    message_count: int
    total_text_chars: int
    max_message_text_chars: int


def count_message_chars(message: Any) -> int:
    """Count extractable text characters in a single message."""
    return message_content(message).char_count


def analyze_messages(messages: Any) -> MessageStats:
    """Compute size metrics for ``messages``.

    Malformed entries contribute 0 characters and a non-sequence collection
    is treated as empty. Never raises.

    Args:
        messages: Ordered sequence of message records (mappings or objects)

    Returns:
        MessageStats with count, total and per-message maximum text length
    """
    items = as_message_list(messages)
    total = 0
    largest = 0
    for message in items:
        try:
            chars = count_message_chars(message)
        except Exception:
            logger.debug("Skipping unmeasurable message of type %s", type(message).__name__)
            chars = 0
        total += chars
        if chars > largest:
            largest = chars
    return MessageStats(
        message_count=len(items),
        total_text_chars=total,
        max_message_text_chars=largest,
    )
