"""
Message content shapes.

Message content arrives either as a plain string or as a sequence of
heterogeneous blocks. Both are parsed into a small tagged union so the
analyzer and compactor can match on the variant instead of probing shapes.
Anything unexpected becomes UnrecognizedContent / OtherBlock and counts as
zero characters.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple, Union


TOOL_RESULT_ROLES = frozenset({"toolResult", "tool", "function"})


@dataclass(frozen=True)
class TextBlock:
    """A block carrying a string ``text`` field."""
    text: str
    raw: Any


@dataclass(frozen=True)
class OtherBlock:
    """Any block without extractable text (images, tool calls, junk)."""
    raw: Any


Block = Union[TextBlock, OtherBlock]


@dataclass(frozen=True)
class TextContent:
    text: str

    @property
    def char_count(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class BlockContent:
    blocks: Tuple[Block, ...]

    @property
    def char_count(self) -> int:
        return sum(len(b.text) for b in self.blocks if isinstance(b, TextBlock))


@dataclass(frozen=True)
class UnrecognizedContent:
    raw: Any

    @property
    def char_count(self) -> int:
        return 0


Content = Union[TextContent, BlockContent, UnrecognizedContent]


def get_field(message: Any, name: str) -> Any:
    """Read ``name`` from a mapping key or an attribute, or None."""
    if isinstance(message, Mapping):
        return message.get(name)
    try:
        return getattr(message, name, None)
    except Exception:
        # Properties on foreign message objects may raise anything.
        return None


def parse_block(block: Any) -> Block:
    text = get_field(block, "text") if block is not None else None
    if isinstance(text, str):
        return TextBlock(text=text, raw=block)
    return OtherBlock(raw=block)


def parse_content(value: Any) -> Content:
    if isinstance(value, str):
        return TextContent(text=value)
    if isinstance(value, (list, tuple)):
        return BlockContent(blocks=tuple(parse_block(b) for b in value))
    return UnrecognizedContent(raw=value)


def message_content(message: Any) -> Content:
    """Parse the ``content`` of a message, whatever its shape."""
    if message is None:
        return UnrecognizedContent(raw=None)
    return parse_content(get_field(message, "content"))


def message_role(message: Any) -> Optional[str]:
    if message is None:
        return None
    role = get_field(message, "role")
    return role if isinstance(role, str) else None


def is_tool_result(message: Any) -> bool:
    return message_role(message) in TOOL_RESULT_ROLES


def as_message_list(messages: Any) -> Sequence[Any]:
    """Return ``messages`` if it is a list/tuple, else an empty list."""
    if isinstance(messages, (list, tuple)):
        return messages
    return []
