"""
History turn limiting.

Keeps only the last N user turns of a conversation and resolves N per
session from channel configuration plus an optional global ceiling.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from ..config.loader import HistoryLimitConfig
from ..config.settings import resolve_history_ceiling
from .content import as_message_list, message_role


THREAD_SUFFIX_PATTERN = re.compile(r"^(.*)(?::(?:thread|topic):\d+)$", re.IGNORECASE)

DIRECT_KINDS = frozenset({"dm", "direct"})
GROUP_KINDS = frozenset({"channel", "group"})


@dataclass(frozen=True)
class SessionKeyParts:
    """Components embedded in a session key."""
    provider: str
    kind: Optional[str]
    peer_id: str


def strip_thread_suffix(value: str) -> str:
    """Drop a trailing ``:thread:<n>`` / ``:topic:<n>`` from a peer id."""
    match = THREAD_SUFFIX_PATTERN.match(value)
    return match.group(1) if match else value


def parse_session_key(session_key: Optional[str]) -> Optional[SessionKeyParts]:
    """Parse ``[agent:<id>:]<provider>:<kind>:<peer>`` into its parts.

    Returns None when no provider can be found.
    """
    if not session_key:
        return None
    parts = [p for p in session_key.split(":") if p]
    if len(parts) >= 3 and parts[0] == "agent":
        parts = parts[2:]
    if not parts:
        return None

    kind = parts[1].lower() if len(parts) > 1 else None
    return SessionKeyParts(
        provider=parts[0].lower(),
        kind=kind,
        peer_id=strip_thread_suffix(":".join(parts[2:])),
    )


def limit_history_turns(messages: Any, limit: Optional[int]) -> Any:
    """Keep only the last ``limit`` user turns.

    The retained slice starts at a user message and includes everything
    after it. A missing or non-positive limit, or an empty collection,
    returns ``messages`` unchanged.
    """
    items = as_message_list(messages)
    if not limit or limit <= 0 or not items:
        return messages

    user_count = 0
    last_user_index = len(items)
    for index in range(len(items) - 1, -1, -1):
        if message_role(items[index]) == "user":
            user_count += 1
            if user_count > limit:
                return list(items[last_user_index:])
            last_user_index = index
    return messages


def get_history_limit_from_session_key(
    session_key: Optional[str],
    config: Optional[HistoryLimitConfig],
) -> Optional[int]:
    """Look up the configured history limit for a session.

    Direct-message sessions use the per-peer override, then the channel's
    dm default. Channel and group sessions use the channel's history limit.
    """
    if config is None:
        return None
    parts = parse_session_key(session_key)
    if parts is None:
        return None

    channel = config.get_channel_config(parts.provider)
    if channel is None:
        return None

    if parts.kind in DIRECT_KINDS:
        if parts.peer_id and parts.peer_id in channel.dms:
            return channel.dms[parts.peer_id]
        return channel.dm_history_limit

    if parts.kind in GROUP_KINDS:
        return channel.history_limit

    return None


def resolve_effective_history_limit(
    session_key: Optional[str],
    config: Optional[HistoryLimitConfig],
    env: Optional[Mapping[str, str]] = None,
) -> Optional[int]:
    """Configured history limit capped by LLM_MAX_HISTORY_TURNS.

    The ceiling only tightens a configured limit. With no configured limit
    the ceiling itself applies.
    """
    configured = get_history_limit_from_session_key(session_key, config)
    ceiling = resolve_history_ceiling(env)
    if ceiling is None:
        return configured
    if configured is None:
        return ceiling
    return min(configured, ceiling)
