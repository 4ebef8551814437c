"""
Discord REST transport for streaming relay sessions.

Creates the anchor as a reply to the user's message and edits it in place.
Throttled edits go through a ``ThrottledEditor`` so rapid deltas coalesce
into at most one edit per interval per message.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from streamrelay.exceptions import (
    PlaceholderCreationError,
    TransportEditError,
    TransportError,
)
from streamrelay.logging_utils import RATE_LIMIT_STATUS, log_operation
from streamrelay.transport import DEFAULT_EDIT_INTERVAL, ThrottledEditor

DEFAULT_API_BASE_URL = "https://discord.com/api/v10"
DEFAULT_REQUEST_TIMEOUT = 10.0


class MessageRef(BaseModel):
    """Identifies a Discord message."""
    model_config = ConfigDict(frozen=True)

    channel_id: str
    message_id: str


class DiscordTransport:
    """
    ``MessagingTransport`` backed by the Discord HTTP API.

    Handles are ``MessageRef`` instances. An ``httpx.AsyncClient`` may be
    injected; otherwise one is created and owned by the transport.
    """

    def __init__(
        self,
        token: str,
        *,
        api_base_url: str = DEFAULT_API_BASE_URL,
        edit_interval: float = DEFAULT_EDIT_INTERVAL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        if not token:
            raise ValueError("Discord bot token must not be empty")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=request_timeout)
        self._base_url = api_base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bot {token}",
            "Content-Type": "application/json",
        }
        self._editor = ThrottledEditor(self._patch, min_interval=edit_interval)

    @classmethod
    def from_config(
        cls,
        token: str,
        config: dict[str, Any],
        client: httpx.AsyncClient | None = None,
    ) -> DiscordTransport:
        """Build a transport from the ``transport.discord`` config section."""
        return cls(
            token,
            api_base_url=config["api_base_url"],
            edit_interval=config["edit_interval"],
            request_timeout=config["request_timeout"],
            client=client,
        )

    async def __aenter__(self) -> DiscordTransport:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop pending edits and close the owned HTTP client."""
        await self._editor.aclose()
        if self._owns_client:
            await self._client.aclose()

    @log_operation("discord_reply")
    async def reply(self, original: MessageRef, content: str) -> MessageRef:
        """Post ``content`` as a reply to ``original``."""
        payload = {
            "content": content,
            "message_reference": {
                "message_id": original.message_id,
                "channel_id": original.channel_id,
                "fail_if_not_exists": False,
            },
            "allowed_mentions": {"replied_user": False},
        }
        try:
            response = await self._client.post(
                f"{self._base_url}/channels/{original.channel_id}/messages",
                json=payload,
                headers=self._headers,
            )
            response.raise_for_status()
            data = response.json()
            return MessageRef(
                channel_id=str(data.get("channel_id", original.channel_id)),
                message_id=str(data["id"]),
            )
        except httpx.HTTPStatusError as e:
            raise self._status_error(PlaceholderCreationError, "reply", e) from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise PlaceholderCreationError(
                f"Could not create reply: {e}", operation="reply"
            ) from e

    async def edit_throttled(self, anchor: MessageRef, content: str) -> None:
        await self._editor.submit(anchor, content)

    async def edit_immediate(self, anchor: MessageRef, content: str) -> None:
        """Replace the content of ``anchor``, dropping any pending throttled edit."""
        await self._editor.override(anchor, content)

    @log_operation("discord_edit")
    async def _patch(self, anchor: MessageRef, content: str) -> None:
        try:
            response = await self._client.patch(
                f"{self._base_url}/channels/{anchor.channel_id}"
                f"/messages/{anchor.message_id}",
                json={"content": content},
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._status_error(TransportEditError, "edit", e) from e
        except httpx.HTTPError as e:
            raise TransportEditError(
                f"Could not edit message: {e}", operation="edit"
            ) from e

    async def flush(self, anchor: MessageRef) -> None:
        """Write any coalesced edit for ``anchor`` now."""
        await self._editor.flush(anchor)

    @staticmethod
    def _status_error(
        error_cls: type[TransportError],
        operation: str,
        error: httpx.HTTPStatusError,
    ) -> TransportError:
        response = error.response
        retry_after = None
        if response.status_code == RATE_LIMIT_STATUS:
            retry_after = _retry_after(response)
        return error_cls(
            f"Discord API returned {response.status_code} for {operation}",
            operation=operation,
            status_code=response.status_code,
            retry_after=retry_after,
        )


def _retry_after(response: httpx.Response) -> float | None:
    try:
        body = response.json()
    except ValueError:
        body = {}
    value = body.get("retry_after") if isinstance(body, dict) else None
    if value is None:
        value = response.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
