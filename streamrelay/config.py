"""Configuration management for stream relay."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from streamrelay.models import StreamingSettings


class Configuration:
    """Manages configuration and environment variables for stream relay."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for the bot token
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self, config_path: str | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if config_path is None:
            config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def discord_bot_token(self) -> str:
        """Get the Discord bot token.

        Returns:
            The bot token as a string.

        Raises:
            ValueError: If the token is not found in environment variables.
        """
        token = os.getenv("DISCORD_BOT_TOKEN")
        if not token:
            raise ValueError(
                "Bot token 'DISCORD_BOT_TOKEN' not found in environment variables"
            )
        return token

    def get_streaming_settings(self) -> StreamingSettings:
        """Get coordinator settings from YAML.

        Returns:
            Validated streaming settings.

        Raises:
            ValueError: If required streaming parameters are missing or invalid.
        """
        streaming_config = self._config.get("streaming", {})

        required_keys = [
            "placeholder_text", "error_template", "empty_response_text",
            "max_content_length", "truncation_suffix", "final_flush",
            "session_timeout",
        ]
        for key in required_keys:
            if key not in streaming_config:
                raise ValueError(
                    f"streaming.{key} must be explicitly configured in config.yaml"
                )

        try:
            settings = StreamingSettings(
                **{key: streaming_config[key] for key in required_keys}
            )
        except ValidationError as e:
            raise ValueError(f"Invalid streaming configuration: {e}") from e

        if len(settings.truncation_suffix) >= settings.max_content_length:
            raise ValueError(
                "streaming.truncation_suffix must be shorter than max_content_length"
            )
        return settings

    def get_discord_config(self) -> dict[str, Any]:
        """Get Discord transport configuration from YAML.

        Returns:
            Discord transport configuration dictionary with validated values.

        Raises:
            ValueError: If required transport parameters are missing or invalid.
        """
        discord_config = self._config.get("transport", {}).get("discord", {})

        required_keys = ["api_base_url", "edit_interval", "request_timeout"]
        for key in required_keys:
            if key not in discord_config:
                raise ValueError(
                    f"{key} must be explicitly configured in config.yaml "
                    "under transport.discord"
                )

        base_url = discord_config["api_base_url"]
        edit_interval = discord_config["edit_interval"]
        request_timeout = discord_config["request_timeout"]

        if not isinstance(base_url, str) or not base_url.startswith("http"):
            raise ValueError("transport.discord.api_base_url must be an http(s) URL")
        if edit_interval < 0:
            raise ValueError("transport.discord.edit_interval must be non-negative")
        if request_timeout <= 0:
            raise ValueError("transport.discord.request_timeout must be positive")

        return {
            "api_base_url": base_url,
            "edit_interval": float(edit_interval),
            "request_timeout": float(request_timeout),
        }

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        logging_config = self._config.get("logging", {})
        return {
            "level": logging_config.get("level", "INFO"),
            "tool_use": logging_config.get("tool_use", True),
        }
