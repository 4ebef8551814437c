"""
Streaming response relay for chat platforms.

This package turns an incremental LLM response into coalesced, ordered
updates of a single anchor message:
- Per-session accumulation with a strict callback lifecycle
- Throttled edit coalescing with a trailing flush
- Contained transport failures reported as structured events
- Discord REST transport
"""

from __future__ import annotations

from streamrelay.config import Configuration
from streamrelay.coordinator import StreamingCoordinator
from streamrelay.discord import DiscordTransport, MessageRef
from streamrelay.driver import relay_stream
from streamrelay.events import (
    EventSink,
    FanoutEventSink,
    LoggingEventSink,
    MemoryEventSink,
)
from streamrelay.exceptions import (
    CallbackOrderError,
    PlaceholderCreationError,
    SessionTimeoutError,
    StreamingError,
    StreamRelayError,
    TerminalOverwriteError,
    TransportEditError,
    TransportError,
)
from streamrelay.factory import RelayFactory
from streamrelay.models import (
    Completed,
    DeltaEvent,
    Failed,
    SessionState,
    StreamEvent,
    StreamingSettings,
    TerminalOutcome,
    ToolUseEvent,
)
from streamrelay.transport import MessagingTransport, ThrottledEditor

__all__ = [
    # Coordinator
    "StreamingCoordinator",
    "relay_stream",
    "RelayFactory",
    # Config
    "Configuration",
    # Models
    "Completed",
    "DeltaEvent",
    "Failed",
    "SessionState",
    "StreamEvent",
    "StreamingSettings",
    "TerminalOutcome",
    "ToolUseEvent",
    # Events
    "EventSink",
    "FanoutEventSink",
    "LoggingEventSink",
    "MemoryEventSink",
    # Transports
    "DiscordTransport",
    "MessageRef",
    "MessagingTransport",
    "ThrottledEditor",
    # Exceptions
    "CallbackOrderError",
    "PlaceholderCreationError",
    "SessionTimeoutError",
    "StreamRelayError",
    "StreamingError",
    "TerminalOverwriteError",
    "TransportEditError",
    "TransportError",
]
