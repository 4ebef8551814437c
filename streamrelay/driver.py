"""
Driving loop helper: feeds a generation stream through a coordinator.
"""

from __future__ import annotations

from collections.abc import AsyncIterable

from streamrelay.coordinator import StreamingCoordinator
from streamrelay.exceptions import PlaceholderCreationError, StreamingError
from streamrelay.logging_utils import operation_context
from streamrelay.models import (
    Completed,
    DeltaEvent,
    Failed,
    StreamItem,
    TerminalOutcome,
    ToolUseEvent,
)


async def relay_stream(
    coordinator: StreamingCoordinator,
    events: AsyncIterable[StreamItem],
) -> TerminalOutcome | None:
    """
    Relay ``events`` to ``coordinator`` in callback order.

    A failed placeholder degrades the session to buffering only. The first
    terminal item ends the relay; an exception from the stream, or a stream
    that ends without a terminal item, is reported through ``on_error``.
    ``cleanup`` always runs.

    Returns:
        The session outcome, or None if the session was closed without one
    """
    async with operation_context(
        "relay_stream", context={"session_id": coordinator.session_id}
    ):
        try:
            try:
                await coordinator.create_placeholder()
            except PlaceholderCreationError:
                pass  # already reported to the event sink; keep buffering

            try:
                await _dispatch(coordinator, events)
            except Exception as e:
                if coordinator.outcome is not None or coordinator.expired:
                    raise
                await coordinator.on_error(e)
        finally:
            await coordinator.cleanup()

    return coordinator.outcome


async def _dispatch(
    coordinator: StreamingCoordinator,
    events: AsyncIterable[StreamItem],
) -> None:
    async for item in events:
        if coordinator.expired:
            return
        if isinstance(item, DeltaEvent):
            await coordinator.on_delta(item.text)
        elif isinstance(item, ToolUseEvent):
            coordinator.on_tool_use(item.name, item.input)
        elif isinstance(item, Completed):
            await coordinator.on_final(item.final_response)
            return
        elif isinstance(item, Failed):
            await coordinator.on_error(item.error)
            return
        else:
            raise TypeError(f"Unsupported stream item: {type(item).__name__}")

    if not coordinator.expired:
        await coordinator.on_error(
            StreamingError(
                "Generation stream ended without a final response",
                session_id=coordinator.session_id,
            )
        )
