"""
Stuck-loop detection.

An agent that keeps re-sending an unchanged context is usually failing to
make progress (e.g. retrying the same failed tool call). Calls are compared
by shape only: (message count, total text characters).
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional


DEFAULT_LOOP_THRESHOLD = 3
UNKNOWN_SESSION = "unknown"


@dataclass
class LoopTrackerEntry:
    """Last observed call shape for a session and how often it repeated."""
    message_count: int
    total_text_chars: int
    streak: int = 1


def session_label(session_key: Optional[str] = None, session_id: Optional[str] = None) -> str:
    """Key used for loop tracking: session key, else session id, else "unknown"."""
    return session_key or session_id or UNKNOWN_SESSION


def format_loop_warning(key: str, message_count: int, total_text_chars: int, streak: int) -> str:
    return (
        f"LOOP_BREAK: session {key} has sent the same context "
        f"(messages={message_count}, chars={total_text_chars}) "
        f"{streak} times consecutively"
    )


class LoopTracker:
    """Per-session repeat counter.

    Entries live as long as the tracker; the key space is bounded by the
    number of active sessions.
    """

    def __init__(self, threshold: int = DEFAULT_LOOP_THRESHOLD):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self._entries: Dict[str, LoopTrackerEntry] = {}
        self._lock = threading.Lock()

    def observe(self, key: str, message_count: int, total_text_chars: int) -> Optional[str]:
        """Record one call shape for ``key``.

        Returns:
            A LOOP_BREAK warning when the streak is at or above the threshold,
            otherwise None
        """
        with self._lock:
            entry = self._entries.get(key)
            if (
                entry is not None
                and entry.message_count == message_count
                and entry.total_text_chars == total_text_chars
            ):
                entry.streak += 1
            else:
                entry = LoopTrackerEntry(message_count, total_text_chars)
                self._entries[key] = entry
            streak = entry.streak

        if streak >= self.threshold:
            return format_loop_warning(key, message_count, total_text_chars, streak)
        return None

    def get(self, key: str) -> Optional[LoopTrackerEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return LoopTrackerEntry(entry.message_count, entry.total_text_chars, entry.streak)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
