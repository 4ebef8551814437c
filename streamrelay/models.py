"""
Session, stream event and settings models for the streaming coordinator.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionState(Enum):
    """Lifecycle states of one coordinator session."""
    EMPTY = "empty"          # No anchor yet
    ANCHORED = "anchored"    # Anchor message exists
    TERMINAL = "terminal"    # Completed or failed
    CLOSED = "closed"        # Resources released


# --------------------------------------------------------------------------- #
# Generation stream events                                                    #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class DeltaEvent:
    """Incremental fragment of generated text."""
    text: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ToolUseEvent:
    """Tool invocation notice from the generation source."""
    name: str
    input: Any = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Completed:
    """Generation finished successfully."""
    final_response: Any = None


@dataclass(frozen=True)
class Failed:
    """Generation failed."""
    error: BaseException


TerminalOutcome = Completed | Failed
StreamItem = DeltaEvent | ToolUseEvent | Completed | Failed


# --------------------------------------------------------------------------- #
# Structured events                                                           #
# --------------------------------------------------------------------------- #

EventKind = Literal[
    "placeholder_created",
    "placeholder_failed",
    "tool_use",
    "transport_failure",
    "session_completed",
    "session_failed",
    "session_timeout",
    "session_closed",
]


class StreamEvent(BaseModel):
    """
    Structured observability event emitted by a coordinator.
    """
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    session_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)


# --------------------------------------------------------------------------- #
# Settings                                                                    #
# --------------------------------------------------------------------------- #


class StreamingSettings(BaseModel):
    """Per-session presentation and lifecycle settings."""
    model_config = ConfigDict(frozen=True)

    placeholder_text: str = "⏳ Processing..."
    error_template: str = "❌ Request failed: {error}\n\nPlease try again."
    empty_response_text: str = "(no response)"
    max_content_length: int = Field(default=2000, ge=1)
    truncation_suffix: str = "…"
    final_flush: bool = True
    session_timeout: float = Field(default=300.0, ge=0)

    @field_validator("placeholder_text", "empty_response_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("error_template")
    @classmethod
    def _has_error_field(cls, value: str) -> str:
        if "{error}" not in value:
            raise ValueError("error_template must contain an {error} field")
        return value
