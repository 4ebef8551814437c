"""
Streaming Coordinator

Sits between a generation stream and a messaging transport that can only
replace the whole content of one anchor message. Text deltas are
accumulated per session and pushed to the anchor as full snapshots; the
transport coalesces rapid updates.

Lifecycle per request:
    create_placeholder() -> on_delta()* / on_tool_use()* ->
    on_final() | on_error() -> cleanup()

Transport failures never escape the coordinator except for
``PlaceholderCreationError`` from ``create_placeholder``. Callbacks invoked
out of order raise ``CallbackOrderError``.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from streamrelay.events import EventSink, LoggingEventSink
from streamrelay.exceptions import (
    CallbackOrderError,
    PlaceholderCreationError,
    SessionTimeoutError,
    TerminalOverwriteError,
    TransportEditError,
    TransportError,
)
from streamrelay.logging_utils import ContextualLogger, TransportErrorHandler
from streamrelay.models import (
    Completed,
    EventKind,
    Failed,
    SessionState,
    StreamEvent,
    StreamingSettings,
    TerminalOutcome,
)
from streamrelay.rendering import format_error_message, render_content
from streamrelay.transport import MessagingTransport


class StreamingCoordinator:
    """
    Coordinates one streaming response with its anchor message.

    Not safe for concurrent use by several producers; the driving loop must
    invoke callbacks sequentially.
    """

    def __init__(
        self,
        transport: MessagingTransport,
        original: Any,
        *,
        settings: StreamingSettings | None = None,
        event_sink: EventSink | None = None,
        session_id: str | None = None,
    ):
        self._transport = transport
        self._original = original
        self.settings = settings or StreamingSettings()
        self._sink = event_sink or LoggingEventSink()
        self._session_id = session_id or uuid.uuid4().hex[:12]
        self._logger = ContextualLogger({"session_id": self._session_id})

        self._anchor: Any = None
        self._buffer = ""
        self._state = SessionState.EMPTY
        self._outcome: TerminalOutcome | None = None
        self._expired = False
        self._watchdog: asyncio.Task | None = None

    # ------------------------------------------------------------------ #
    # Accessors                                                          #
    # ------------------------------------------------------------------ #

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def anchor(self) -> Any:
        """Anchor handle, or None before creation and after cleanup."""
        return self._anchor

    @property
    def buffer(self) -> str:
        """Text accumulated so far."""
        return self._buffer

    accumulated_text = buffer

    @property
    def outcome(self) -> TerminalOutcome | None:
        return self._outcome

    @property
    def expired(self) -> bool:
        """True when the session was ended by its timeout."""
        return self._expired

    # ------------------------------------------------------------------ #
    # Callback surface                                                   #
    # ------------------------------------------------------------------ #

    async def create_placeholder(self) -> None:
        """
        Create the anchor as a reply to the original message.

        Raises:
            CallbackOrderError: If an anchor exists or the session ended
            PlaceholderCreationError: If the transport could not create it
        """
        if self._state is not SessionState.EMPTY:
            raise CallbackOrderError(
                f"create_placeholder called in state '{self._state.value}'",
                session_id=self._session_id,
            )
        self._start_watchdog()

        try:
            anchor = await self._transport.reply(
                self._original, self.settings.placeholder_text
            )
        except PlaceholderCreationError as e:
            e.session_id = self._session_id
            self._emit("placeholder_failed", **TransportErrorHandler.describe(e))
            raise
        except Exception as e:
            self._emit("placeholder_failed", **TransportErrorHandler.describe(e))
            raise PlaceholderCreationError(
                f"Placeholder creation failed: {e}", session_id=self._session_id
            ) from e

        if self._state is not SessionState.EMPTY:
            # Session timed out while the reply was in flight
            if isinstance(self._outcome, Failed):
                await self._edit_immediate(
                    self._error_content(self._outcome.error),
                    TerminalOverwriteError,
                    "error_overwrite",
                    anchor=anchor,
                )
            return

        self._anchor = anchor
        self._state = SessionState.ANCHORED
        self._emit("placeholder_created")

        if self._buffer:
            await self._edit_throttled()

    async def on_delta(self, text: str) -> None:
        """Append ``text`` and push the full buffer to the anchor."""
        if self._ignored_after_expiry("on_delta"):
            return
        self._require_active("on_delta")

        if not text:
            return
        self._buffer += text

        if self._state is SessionState.ANCHORED:
            await self._edit_throttled()

    def on_tool_use(self, name: str, tool_input: Any = None) -> None:
        """Record a tool invocation; never affects buffer or state."""
        self._emit("tool_use", name=name, input=tool_input)

    async def on_final(self, final_response: Any = None) -> None:
        """
        Record successful completion.

        With ``final_flush`` enabled the anchor gets one immediate write of
        the full buffer, so output is never left truncated by a debounced
        edit that has not fired yet.
        """
        if self._ignored_after_expiry("on_final"):
            return
        self._require_active("on_final")

        was_anchored = self._state is SessionState.ANCHORED
        self._outcome = Completed(final_response)
        self._state = SessionState.TERMINAL
        self._cancel_watchdog()

        if was_anchored:
            if not self._buffer:
                await self._edit_immediate(
                    self.settings.empty_response_text, TransportEditError, "final_edit"
                )
            elif self.settings.final_flush:
                await self._edit_immediate(
                    self._rendered(), TransportEditError, "final_edit"
                )

        self._emit(
            "session_completed", length=len(self._buffer), anchored=was_anchored
        )

    async def on_error(self, error: BaseException) -> None:
        """
        Record failure and show it on the anchor, if there is one.

        Never raises for transport failures; only for contract violations.
        """
        if self._ignored_after_expiry("on_error"):
            return
        self._require_active("on_error")
        await self._fail(error)

    async def cleanup(self) -> None:
        """Release the anchor and buffer. Safe to call any number of times."""
        self._cancel_watchdog()
        already_closed = self._state is SessionState.CLOSED
        self._anchor = None
        self._buffer = ""
        self._state = SessionState.CLOSED
        if not already_closed:
            self._emit("session_closed")

    async def flush(self) -> None:
        """Write the full buffer to the anchor immediately."""
        if self._anchor is None or not self._buffer:
            return
        if self._state is SessionState.ANCHORED or isinstance(self._outcome, Completed):
            await self._edit_immediate(self._rendered(), TransportEditError, "flush")

    # ------------------------------------------------------------------ #
    # Internals                                                          #
    # ------------------------------------------------------------------ #

    async def _fail(self, error: BaseException) -> None:
        was_anchored = self._state is SessionState.ANCHORED
        self._outcome = Failed(error)
        self._state = SessionState.TERMINAL
        self._cancel_watchdog()

        self._emit(
            "session_failed",
            error_type=type(error).__name__,
            error_message=str(error),
            anchored=was_anchored,
        )
        if was_anchored:
            await self._edit_immediate(
                self._error_content(error), TerminalOverwriteError, "error_overwrite"
            )

    async def _edit_throttled(self) -> None:
        try:
            await self._transport.edit_throttled(self._anchor, self._rendered())
        except Exception as e:
            self._report_transport_failure(e, TransportEditError, "edit_throttled")

    async def _edit_immediate(
        self,
        content: str,
        error_cls: type[TransportError],
        operation: str,
        anchor: Any = None,
    ) -> None:
        try:
            await self._transport.edit_immediate(
                anchor if anchor is not None else self._anchor, content
            )
        except Exception as e:
            self._report_transport_failure(e, error_cls, operation)

    def _report_transport_failure(
        self,
        error: Exception,
        error_cls: type[TransportError],
        operation: str,
    ) -> None:
        if not isinstance(error, error_cls):
            wrapped = error_cls(
                f"{operation} failed: {error}",
                operation=operation,
                session_id=self._session_id,
            )
            wrapped.__cause__ = error
            error = wrapped
        self._emit("transport_failure", **TransportErrorHandler.describe(error))

    def _rendered(self) -> str:
        return render_content(
            self._buffer,
            self.settings.max_content_length,
            self.settings.truncation_suffix,
        )

    def _error_content(self, error: BaseException) -> str:
        return render_content(
            format_error_message(error, self.settings.error_template),
            self.settings.max_content_length,
            self.settings.truncation_suffix,
        )

    def _require_active(self, callback: str) -> None:
        if self._state in (SessionState.TERMINAL, SessionState.CLOSED):
            raise CallbackOrderError(
                f"{callback} called in state '{self._state.value}'",
                session_id=self._session_id,
            )

    def _ignored_after_expiry(self, callback: str) -> bool:
        if not self._expired:
            return False
        self._logger.warning(
            "Callback ignored after session timeout", callback=callback
        )
        return True

    def _emit(self, kind: EventKind, **data: Any) -> None:
        try:
            self._sink.emit(
                StreamEvent(kind=kind, session_id=self._session_id, data=data)
            )
        except Exception as e:
            self._logger.warning(
                "Event sink failed",
                event_kind=kind,
                **TransportErrorHandler.describe(e),
            )

    # ------------------------------------------------------------------ #
    # Session timeout                                                    #
    # ------------------------------------------------------------------ #

    def _start_watchdog(self) -> None:
        timeout = self.settings.session_timeout
        if timeout <= 0 or self._watchdog is not None:
            return
        self._watchdog = asyncio.create_task(self._expire_after(timeout))

    def _cancel_watchdog(self) -> None:
        task = self._watchdog
        self._watchdog = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _expire_after(self, timeout: float) -> None:
        await asyncio.sleep(timeout)
        self._watchdog = None
        if self._state in (SessionState.TERMINAL, SessionState.CLOSED):
            return
        self._expired = True
        self._emit("session_timeout", timeout=timeout)
        await self._fail(SessionTimeoutError(timeout, session_id=self._session_id))
        await self.cleanup()
