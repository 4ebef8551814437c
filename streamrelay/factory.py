"""
Wiring of configuration, transport and coordinators.
"""

from __future__ import annotations

from typing import Any

import httpx

from streamrelay.config import Configuration
from streamrelay.coordinator import StreamingCoordinator
from streamrelay.discord import DiscordTransport
from streamrelay.events import EventSink, LoggingEventSink
from streamrelay.logging_utils import configure_logging
from streamrelay.transport import MessagingTransport


class RelayFactory:
    """
    Builds per-request coordinators from one configuration.

    Settings are validated once; every coordinator shares the same event
    sink unless one is passed explicitly.
    """

    def __init__(
        self,
        configuration: Configuration | None = None,
        event_sink: EventSink | None = None,
    ):
        self.configuration = configuration or Configuration()
        logging_config = self.configuration.get_logging_config()
        configure_logging(logging_config["level"])

        self.settings = self.configuration.get_streaming_settings()
        self.event_sink = event_sink or LoggingEventSink(
            log_tool_use=logging_config["tool_use"]
        )

    def discord_transport(
        self, client: httpx.AsyncClient | None = None
    ) -> DiscordTransport:
        """Create a Discord transport using the configured bot token."""
        return DiscordTransport.from_config(
            self.configuration.discord_bot_token,
            self.configuration.get_discord_config(),
            client=client,
        )

    def coordinator(
        self,
        transport: MessagingTransport,
        original: Any,
        *,
        session_id: str | None = None,
        event_sink: EventSink | None = None,
    ) -> StreamingCoordinator:
        return StreamingCoordinator(
            transport,
            original,
            settings=self.settings,
            event_sink=event_sink or self.event_sink,
            session_id=session_id,
        )
