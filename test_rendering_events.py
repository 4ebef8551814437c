#!/usr/bin/env python3
"""
Tests for content rendering and structured event sinks.
"""

import pytest

from streamrelay.events import (
    EventSink,
    FanoutEventSink,
    LoggingEventSink,
    MemoryEventSink,
)
from streamrelay.models import StreamEvent, StreamingSettings
from streamrelay.rendering import build_tool_label, format_error_message, render_content


class TestRenderContent:
    """Platform length limits."""

    def test_short_text_unchanged(self):
        """Test that short text is not truncated."""
        assert render_content("hello", max_length=10) == "hello"

    def test_exact_limit_unchanged(self):
        """Test text exactly at the limit."""
        assert render_content("x" * 2000) == "x" * 2000

    def test_long_text_truncated_with_suffix(self):
        """Test truncation with the suffix."""
        result = render_content("abcdefghijkl", max_length=8, suffix="...")
        assert result == "abcde..."
        assert len(result) == 8

    def test_suffix_longer_than_limit(self):
        """Test a suffix longer than the limit."""
        assert render_content("abcdef", max_length=2, suffix="...") == ".."


class TestFormatErrorMessage:
    """Failure messages."""

    def test_uses_error_message(self):
        """Test formatting with the error message."""
        template = StreamingSettings().error_template
        assert format_error_message(ValueError("Image too large"), template) == (
            "❌ Request failed: Image too large\n\nPlease try again."
        )

    def test_braces_in_message_are_kept(self):
        """Test that braces in the message are kept."""
        assert format_error_message(KeyError("{x}"), "E: {error}") == "E: '{x}'"

    def test_blank_message_falls_back_to_type(self):
        """Test the type name fallback for blank messages."""
        assert format_error_message(RuntimeError("  "), "E: {error}") == "E: RuntimeError"


class TestBuildToolLabel:
    """Tool labels for tool-use notices."""

    @pytest.mark.parametrize(("name", "tool_input", "expected"), [
        ("Read", {"file_path": "/etc/app/config.yaml"}, "Read: config.yaml"),
        ("Write", {"path": "notes.md"}, "Write: notes.md"),
        ("Edit", {}, "Edit"),
        ("Bash", {"command": "pnpm test"}, "Bash: pnpm test"),
        ("Bash", {"command": "x" * 50}, "Bash: " + "x" * 37 + "..."),
        ("Grep", {"pattern": "TODO"}, "Grep: TODO"),
        ("Glob", {"pattern": "**/*.py"}, "Glob: **/*.py"),
        ("WebFetch", {"url": "https://example.com"}, "WebFetch: https://example.com"),
        ("WebSearch", {"query": "discord rate limits"}, "WebSearch: discord rate limits"),
        ("Task", {"prompt": "summarize"}, "Task: summarize"),
        ("translate_image", {"image_data": "base64..."}, "translate_image"),
        ("Read", None, "Read"),
        ("Read", "not a mapping", "Read"),
    ])
    def test_labels(self, name, tool_input, expected):
        """Test tool labels for common tools."""
        assert build_tool_label(name, tool_input) == expected


class TestEventSinks:
    """Sink implementations."""

    def test_memory_sink_is_bounded(self):
        """Test that the memory sink keeps only recent events."""
        sink = MemoryEventSink(capacity=2)
        for kind in ["placeholder_created", "tool_use", "session_closed"]:
            sink.emit(StreamEvent(kind=kind, session_id="s"))

        assert [e.kind for e in sink.events] == ["tool_use", "session_closed"]
        assert len(sink.of_kind("tool_use")) == 1
        sink.clear()
        assert sink.events == []

    def test_fanout_isolates_failing_sink(self):
        """Test that one failing sink does not block the others."""
        class BrokenSink:
            def emit(self, event):
                raise RuntimeError("down")

        memory = MemoryEventSink()
        fanout = FanoutEventSink([BrokenSink(), memory])

        fanout.emit(StreamEvent(kind="session_failed", session_id="s"))

        assert len(memory.events) == 1

    @pytest.mark.parametrize("kind", [
        "placeholder_created", "placeholder_failed", "tool_use", "transport_failure",
        "session_completed", "session_failed", "session_timeout", "session_closed",
    ])
    def test_logging_sink_handles_every_kind(self, kind):
        """Test logging every event kind."""
        sink = LoggingEventSink()
        data = {"name": "Read", "input": {"file_path": "a/b.txt"}} if kind == "tool_use" else {}

        sink.emit(StreamEvent(kind=kind, session_id="s", data=data))

    def test_sinks_satisfy_protocol(self):
        """Test that the sinks satisfy EventSink."""
        assert isinstance(LoggingEventSink(), EventSink)
        assert isinstance(MemoryEventSink(), EventSink)
        assert isinstance(FanoutEventSink([]), EventSink)

    def test_event_rejects_unknown_kind(self):
        """Test that unknown event kinds are rejected."""
        with pytest.raises(ValueError):
            StreamEvent(kind="something_else", session_id="s")
