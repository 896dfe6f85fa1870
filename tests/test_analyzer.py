"""
Unit tests for message content parsing and size analysis.

Tests that every content shape is measured and nothing malformed raises.
"""

from types import SimpleNamespace

from llm_usage_guard.core.analyzer import analyze_messages, count_message_chars
from llm_usage_guard.core.content import (
    BlockContent,
    OtherBlock,
    TextBlock,
    TextContent,
    UnrecognizedContent,
    is_tool_result,
    parse_content,
)


class TestParseContent:
    """Test the content tagged union."""

    def test_string_is_text_content(self):
        assert parse_content("hello") == TextContent(text="hello")

    def test_list_is_block_content(self):
        content = parse_content([{"type": "text", "text": "hi"}, {"type": "image"}])
        assert isinstance(content, BlockContent)
        assert isinstance(content.blocks[0], TextBlock)
        assert isinstance(content.blocks[1], OtherBlock)
        assert content.char_count == 2

    def test_other_values_are_unrecognized(self):
        for value in (None, 42, {"text": "not a list"}):
            content = parse_content(value)
            assert isinstance(content, UnrecognizedContent)
            assert content.char_count == 0

    def test_block_with_non_string_text(self):
        content = parse_content([{"type": "text", "text": 123}, None, "raw"])
        assert content.char_count == 0


class TestAnalyzeMessages:
    """Test message size metrics."""

    def test_empty_collection(self):
        """Verify empty input yields zeros."""
        stats = analyze_messages([])
        assert stats.message_count == 0
        assert stats.total_text_chars == 0
        assert stats.max_message_text_chars == 0

    def test_mixed_shapes(self):
        """Verify string and block content are both counted."""
        messages = [
            {"role": "system", "content": "abcd"},
            {"role": "user", "content": [{"type": "text", "text": "12345"}, {"type": "text", "text": "6"}]},
            {"role": "assistant", "content": [{"type": "tool_use", "id": "x"}]},
        ]
        stats = analyze_messages(messages)
        assert stats.message_count == 3
        assert stats.total_text_chars == 10
        assert stats.max_message_text_chars == 6

    def test_object_messages(self):
        """Verify attribute-style messages are measured too."""
        messages = [SimpleNamespace(role="user", content="hello"), SimpleNamespace(role="user")]
        stats = analyze_messages(messages)
        assert stats.total_text_chars == 5

    def test_malformed_entries_count_zero(self):
        """Verify malformed entries degrade to zero instead of raising."""
        messages = [None, 7, "bare string", {"content": None}, {"role": "user", "content": "ok"}]
        stats = analyze_messages(messages)
        assert stats.message_count == 5
        assert stats.total_text_chars == 2

    def test_non_sequence_is_empty(self):
        """Verify a non-list collection is treated as empty."""
        assert analyze_messages(None).message_count == 0
        assert analyze_messages({"messages": []}).message_count == 0

    def test_raising_property_counts_zero(self):
        """Verify a message whose content property raises is skipped."""
        class Exploding:
            @property
            def content(self):
                raise RuntimeError("boom")

        assert count_message_chars(Exploding()) == 0
        assert analyze_messages([Exploding()]).total_text_chars == 0

    def test_max_never_exceeds_total(self):
        """Verify max per-message chars is bounded by the total."""
        messages = [{"content": "a" * n} for n in (3, 17, 0, 9)]
        stats = analyze_messages(messages)
        assert stats.max_message_text_chars <= stats.total_text_chars
        assert stats.max_message_text_chars == 17


class TestToolResultRoles:
    """Test tool-result classification."""

    def test_tool_roles(self):
        for role in ("tool", "toolResult", "function"):
            assert is_tool_result({"role": role})
        assert not is_tool_result({"role": "user"})
        assert not is_tool_result(None)
