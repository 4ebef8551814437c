"""
Error hierarchy for streaming relay sessions.

Transport failures carry enough context to be logged and classified:
- Which transport operation failed
- HTTP status and retry guidance for rate limits
- The session the failure belongs to
"""

from __future__ import annotations


class StreamRelayError(Exception):
    """Base relay error with session context."""

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id


class TransportError(StreamRelayError):
    """Messaging transport rejected or failed an operation."""

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        status_code: int | None = None,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.status_code = status_code
        self.retry_after = retry_after


class PlaceholderCreationError(TransportError):
    """Anchor message could not be created."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("operation", "reply")
        super().__init__(message, **kwargs)


class TransportEditError(TransportError):
    """Editing the anchor message failed."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("operation", "edit")
        super().__init__(message, **kwargs)


class TerminalOverwriteError(TransportError):
    """Overwriting the anchor with a failure message failed."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("operation", "edit_immediate")
        super().__init__(message, **kwargs)


class CallbackOrderError(StreamRelayError):
    """Coordinator callback invoked out of order or after the session ended."""
    pass


class SessionTimeoutError(StreamRelayError):
    """Session did not reach a terminal outcome in time."""

    def __init__(self, timeout: float, **kwargs):
        super().__init__(f"Session timed out after {timeout:g}s", **kwargs)
        self.timeout = timeout


class StreamingError(StreamRelayError):
    """Generation stream ended without a terminal outcome."""
    pass
