"""
Text formatting for anchor message content.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Discord message content limit
DEFAULT_MAX_LENGTH = 2000

_PATH_TOOLS = ("Read", "Write", "Edit")
_PATTERN_TOOLS = {
    "Grep": ("pattern", "query"),
    "Glob": ("pattern",),
    "WebSearch": ("query",),
    "Task": ("description", "prompt"),
}


def render_content(
    text: str,
    max_length: int = DEFAULT_MAX_LENGTH,
    suffix: str = "…",
) -> str:
    """
    Fit text into a single message.

    Content over ``max_length`` is cut and ends with ``suffix`` so the
    result never exceeds the platform limit.
    """
    if len(text) <= max_length:
        return text
    suffix = suffix[:max_length]
    return text[: max_length - len(suffix)] + suffix


def format_error_message(error: BaseException, template: str) -> str:
    """Render a failure message for display in place of partial output."""
    message = str(error).strip() or type(error).__name__
    return template.replace("{error}", message)


def build_tool_label(name: str, tool_input: Any = None) -> str:
    """
    Build a short human-readable label for a tool invocation.

    Args:
        name: Tool name
        tool_input: Tool arguments, usually a mapping

    Returns:
        Label such as ``Read: config.yaml`` or ``Bash: pytest -x``
    """
    if not isinstance(tool_input, Mapping):
        return name

    if name in _PATH_TOOLS:
        path = tool_input.get("file_path") or tool_input.get("path")
        return f"{name}: {_base_name(str(path))}" if path else name

    if name == "Bash":
        cmd = tool_input.get("command") or tool_input.get("cmd")
        if not cmd:
            return name
        cmd = str(cmd)
        return f"Bash: {cmd[:37] + '...' if len(cmd) > 40 else cmd}"

    if name == "WebFetch":
        url = tool_input.get("url")
        return f"WebFetch: {str(url)[:35]}" if url else name

    for key in _PATTERN_TOOLS.get(name, ()):
        if value := tool_input.get(key):
            return f"{name}: {str(value)[:30]}"

    return name


def _base_name(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1] or path
