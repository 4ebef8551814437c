"""
Structured event sinks.

Coordinators never write log output directly; they emit ``StreamEvent``
instances to an injected sink. ``LoggingEventSink`` is the default and
renders events through structlog.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import structlog

from streamrelay.models import EventKind, StreamEvent
from streamrelay.rendering import build_tool_label

logger = structlog.get_logger(__name__)

DEFAULT_MEMORY_CAPACITY = 1000

_WARNING_KINDS = {"placeholder_failed", "transport_failure", "session_timeout"}

_MESSAGES: dict[str, str] = {
    "placeholder_created": "Placeholder created",
    "placeholder_failed": "Placeholder creation failed",
    "tool_use": "Tool called",
    "transport_failure": "Transport update failed",
    "session_completed": "Stream complete",
    "session_failed": "Streaming session failed",
    "session_timeout": "Streaming session timed out",
    "session_closed": "Session closed",
}


@runtime_checkable
class EventSink(Protocol):
    """Receiver of coordinator events."""

    def emit(self, event: StreamEvent) -> None:
        ...


class LoggingEventSink:
    """Writes events to the structured log."""

    def __init__(self, log_tool_use: bool = True):
        self.log_tool_use = log_tool_use
        self._logger = logger

    def emit(self, event: StreamEvent) -> None:
        fields = dict(event.data)
        if event.kind == "tool_use":
            if not self.log_tool_use:
                return
            fields.pop("input", None)
            fields["label"] = build_tool_label(
                event.data.get("name", ""), event.data.get("input")
            )

        log = self._logger.bind(session_id=event.session_id, event_kind=event.kind)
        if event.kind == "session_failed":
            log.error(_MESSAGES[event.kind], **fields)
        elif event.kind in _WARNING_KINDS:
            log.warning(_MESSAGES[event.kind], **fields)
        else:
            log.info(_MESSAGES[event.kind], **fields)


class MemoryEventSink:
    """Keeps the most recent events in memory."""

    def __init__(self, capacity: int = DEFAULT_MEMORY_CAPACITY):
        self._events: deque[StreamEvent] = deque(maxlen=capacity)

    def emit(self, event: StreamEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[StreamEvent]:
        return list(self._events)

    def of_kind(self, kind: EventKind) -> list[StreamEvent]:
        """Events of a single kind, in emission order."""
        return [e for e in self._events if e.kind == kind]

    def clear(self) -> None:
        self._events.clear()


class FanoutEventSink:
    """Forwards each event to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def emit(self, event: StreamEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.warning(
                    "Event sink failed",
                    sink=type(sink).__name__,
                    event_kind=event.kind,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
