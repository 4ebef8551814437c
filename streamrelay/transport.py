"""
Messaging transport capability and throttled edit coalescing.

The coordinator only talks to a ``MessagingTransport``. Transports that
need rate-limited editing compose a ``ThrottledEditor`` to provide
``edit_throttled``:
- First edit in a quiet window is sent immediately
- Edits inside the window replace the pending content
- One trailing flush writes the latest snapshot when the window elapses
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import structlog

from streamrelay.logging_utils import TransportErrorHandler

logger = structlog.get_logger(__name__)

# Minimum spacing between edits of one message (Discord gateway value)
DEFAULT_EDIT_INTERVAL = 0.15


@runtime_checkable
class MessagingTransport(Protocol):
    """
    Sink-side operations on the anchor message.

    Anchor and original message handles are opaque to the coordinator.
    """

    async def reply(self, original: Any, content: str) -> Any:
        """Create the anchor as a reply to ``original``; return its handle."""
        ...

    async def edit_throttled(self, anchor: Any, content: str) -> None:
        """Replace anchor content, coalescing rapid successive requests."""
        ...

    async def edit_immediate(self, anchor: Any, content: str) -> None:
        """
        Replace anchor content without debouncing.

        Supersedes throttled content still pending for the same anchor.
        """
        ...


EditFunc = Callable[[Any, str], Awaitable[None]]
EditFunc = Callable[[Any, str], Awaitable[None]]


@dataclass
class _AnchorEditState:
    """Throttle bookkeeping for one anchor."""
    pending: str | None = None
    last_edit: float | None = None
    flush_task: asyncio.Task | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ThrottledEditor:
    """
    Per-anchor edit coalescing with a guaranteed trailing flush.

    Edits of one anchor are serialized and always carry the most recently
    submitted content, so the displayed text never goes backwards. The
    window is measured from the end of the previous edit, so an edit still
    in flight also defers new submissions to the trailing flush.
    """

    def __init__(self, edit: EditFunc, min_interval: float = DEFAULT_EDIT_INTERVAL):
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self._edit = edit
        self.min_interval = min_interval
        self._states: dict[Hashable, _AnchorEditState] = {}
        self._closed = False

    async def __aenter__(self) -> ThrottledEditor:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def tracked_anchors(self) -> int:
        return len(self._states)

    async def submit(self, anchor: Hashable, content: str) -> None:
        """
        Request that ``anchor`` display ``content``.

        Returns without waiting when the edit is deferred to the trailing
        flush. Raises whatever the underlying edit raises when the edit is
        sent immediately.
        """
        if self._closed:
            raise RuntimeError("ThrottledEditor is closed")

        self._evict_idle(asyncio.get_running_loop().time())
        state = self._state_for(anchor)

        state.pending = content
        if state.flush_task is not None:
            return

        if state.lock.locked() or self._remaining(state) > 0:
            state.flush_task = asyncio.create_task(self._flush_later(anchor, state))
        else:
            await self._flush_state(anchor, state)

    async def override(self, anchor: Hashable, content: str) -> None:
        """
        Write ``content`` now, superseding anything pending for ``anchor``.

        Waits for an in-flight edit of the same anchor, so a stale trailing
        flush can never land after this write.
        """
        self._state_for(anchor).pending = content
        await self.flush(anchor)

    async def flush(self, anchor: Hashable) -> None:
        """Write pending content for ``anchor`` now, ignoring the window."""
        state = self._states.get(anchor)
        if state is None:
            return
        task = state.flush_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            state.flush_task = None
        await self._flush_state(anchor, state)

    def discard(self, anchor: Hashable) -> None:
        """Drop pending content and throttle state for ``anchor``."""
        state = self._states.pop(anchor, None)
        if state is not None and state.flush_task is not None:
            state.flush_task.cancel()

    async def aclose(self) -> None:
        """Cancel trailing flushes and forget all anchors."""
        self._closed = True
        tasks = [s.flush_task for s in self._states.values() if s.flush_task]
        self._states.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _state_for(self, anchor: Hashable) -> _AnchorEditState:
        state = self._states.get(anchor)
        if state is None:
            state = self._states[anchor] = _AnchorEditState()
        return state

    def _remaining(self, state: _AnchorEditState) -> float:
        if state.last_edit is None:
            return 0.0
        elapsed = asyncio.get_running_loop().time() - state.last_edit
        return max(0.0, self.min_interval - elapsed)

    async def _flush_later(self, anchor: Hashable, state: _AnchorEditState) -> None:
        # Wait out any in-flight edit, then a full window after it ended
        while True:
            if state.lock.locked():
                async with state.lock:
                    pass
            remaining = self._remaining(state)
            if remaining > 0:
                await asyncio.sleep(remaining)
            elif not state.lock.locked():
                break

        state.flush_task = None
        try:
            await self._flush_state(anchor, state)
        except Exception as e:
            logger.warning(
                "Trailing edit failed",
                **TransportErrorHandler.describe(e),
            )

    async def _flush_state(self, anchor: Hashable, state: _AnchorEditState) -> None:
        async with state.lock:
            content = state.pending
            if content is None:
                return
            state.pending = None
            try:
                await self._edit(anchor, content)
            finally:
                state.last_edit = asyncio.get_running_loop().time()

    def _evict_idle(self, now: float) -> None:
        idle = [
            key for key, state in self._states.items()
            if state.pending is None
            and state.flush_task is None
            and not state.lock.locked()
            and (state.last_edit is None or now - state.last_edit >= self.min_interval)
        ]
        for key in idle:
            del self._states[key]
