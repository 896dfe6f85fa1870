"""
Message compaction.

Trims a message collection before it is sent to a model:

1. Truncate oversized text (tool results get a tighter cap).
2. Drop system messages whose content repeats an earlier kept system message.
3. Keep all system messages plus the most recent non-system messages within
   the ``max_messages`` window.

Truncation runs before windowing so the kept tail is already size-bounded.
The input is never mutated, and compacting a compacted list is a no-op.
"""

import copy
import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from ..config.settings import (
    ENV_MAX_MESSAGE_CHARS,
    ENV_MAX_MESSAGES,
    ENV_MAX_TOOL_RESULT_CHARS,
    get_environ,
    parse_positive_int,
)
from .content import (
    BlockContent,
    TextBlock,
    TextContent,
    as_message_list,
    get_field,
    is_tool_result,
    message_content,
    message_role,
)

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n...[truncated: content exceeded context budget]"

DEFAULT_MAX_MESSAGES = 60
DEFAULT_MAX_MESSAGE_CHARS = 20_000
DEFAULT_MAX_TOOL_RESULT_CHARS = 8_000


@dataclass(frozen=True)
class CompactionOptions:
    """Budgets for compact_messages. ``max_messages <= 0`` disables windowing."""
    max_messages: int = DEFAULT_MAX_MESSAGES
    max_message_chars: int = DEFAULT_MAX_MESSAGE_CHARS
    max_tool_result_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS

    def __post_init__(self):
        if self.max_message_chars <= 0:
            raise ValueError("max_message_chars must be > 0")
        if self.max_tool_result_chars <= 0:
            raise ValueError("max_tool_result_chars must be > 0")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CompactionOptions":
        """Defaults overridden by LLM_MAX_MESSAGES / LLM_MAX_MESSAGE_CHARS /
        LLM_MAX_TOOL_RESULT_CHARS when those hold positive integers."""
        environ = get_environ(env)
        return cls(
            max_messages=parse_positive_int(environ.get(ENV_MAX_MESSAGES)) or DEFAULT_MAX_MESSAGES,
            max_message_chars=(
                parse_positive_int(environ.get(ENV_MAX_MESSAGE_CHARS)) or DEFAULT_MAX_MESSAGE_CHARS
            ),
            max_tool_result_chars=(
                parse_positive_int(environ.get(ENV_MAX_TOOL_RESULT_CHARS))
                or DEFAULT_MAX_TOOL_RESULT_CHARS
            ),
        )


def truncate_text(text: str, limit: int) -> str:
    """Cap ``text`` at ``limit`` characters, ending with TRUNCATION_MARKER."""
    if len(text) <= limit:
        return text
    if limit <= len(TRUNCATION_MARKER):
        return TRUNCATION_MARKER[:limit]
    return text[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def _with_field(item: Any, name: str, value: Any) -> Any:
    """Copy of ``item`` (mapping or object) with ``name`` set to ``value``.

    Objects are shallow-copied; ones that refuse copying or assignment are
    rebuilt as a mapping of their attributes.
    """
    if isinstance(item, Mapping):
        return {**item, name: value}
    if dataclasses.is_dataclass(item) and not isinstance(item, type):
        try:
            return dataclasses.replace(item, **{name: value})
        except (TypeError, ValueError):
            pass
    try:
        clone = copy.copy(item)
        setattr(clone, name, value)
        return clone
    except Exception:
        logger.debug("Rebuilding %s as a mapping to replace %r", type(item).__name__, name)
    try:
        attributes = dict(vars(item))
    except TypeError:
        attributes = {
            key: get_field(item, key)
            for key in ("role", "type")
            if get_field(item, key) is not None
        }
    attributes[name] = value
    return attributes


def _truncate_message(message: Any, cap: int) -> Any:
    if message is None:
        return message

    content = message_content(message)
    if isinstance(content, TextContent):
        if len(content.text) <= cap:
            return message
        return _with_field(message, "content", truncate_text(content.text, cap))

    if isinstance(content, BlockContent):
        changed = False
        blocks = []
        for block in content.blocks:
            if isinstance(block, TextBlock) and len(block.text) > cap:
                blocks.append(_with_field(block.raw, "text", truncate_text(block.text, cap)))
                changed = True
            else:
                blocks.append(block.raw)
        if not changed:
            return message
        return _with_field(message, "content", blocks)

    return message


def _system_key(message: Any) -> str:
    content = message_content(message)
    if isinstance(content, TextContent):
        return content.text
    raw = get_field(message, "content")
    try:
        return json.dumps(raw, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return repr(raw)


def _is_system(message: Any) -> bool:
    return message_role(message) == "system"


def compact_messages(messages: Any, options: Optional[CompactionOptions] = None) -> List[Any]:
    """Return a compacted copy of ``messages``.

    Args:
        messages: Ordered message records; a non-sequence is treated as empty
        options: Budgets (defaults to CompactionOptions())

    Returns:
        A new list. Unchanged messages are the original objects.
    """
    opts = options or CompactionOptions()

    compacted = []
    for message in as_message_list(messages):
        cap = opts.max_tool_result_chars if is_tool_result(message) else opts.max_message_chars
        compacted.append(_truncate_message(message, cap))

    seen = set()
    deduped = []
    for message in compacted:
        if _is_system(message):
            key = _system_key(message)
            if key in seen:
                continue
            seen.add(key)
        deduped.append(message)

    if opts.max_messages > 0 and len(deduped) > opts.max_messages:
        system = [m for m in deduped if _is_system(m)]
        others = [m for m in deduped if not _is_system(m)]
        keep = max(0, opts.max_messages - len(system))
        tail = others[len(others) - keep:] if keep else []
        deduped = system + tail

    return deduped
