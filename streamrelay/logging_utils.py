"""
Centralized logging and error handling utilities for stream relay.

This module provides decorators and helper functions to standardize logging
and error classification for transport operations, so that messaging sink
failures are reported the same way wherever they are contained.

Features:
- Structured logging with contextual information
- Transport error classification
- Performance timing for awaited operations
- Context-bound loggers for per-session output
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from streamrelay.exceptions import StreamRelayError, TransportError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

RATE_LIMIT_STATUS = 429

logger = structlog.get_logger(__name__)


def configure_logging(level: str | int = "INFO") -> None:
    """Route stdlib logging to stderr at the given level."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level '{level}'")
        level = resolved
    logging.basicConfig(
        level=level, format="%(message)s"
    )
    logging.getLogger().setLevel(level)


class TransportErrorHandler:
    """Classification of messaging sink failures for structured logs."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a log category.

        Args:
            error: The exception to classify

        Returns:
            Error category name
        """
        if isinstance(error, TransportError):
            if error.status_code == RATE_LIMIT_STATUS:
                return "rate_limited"
            if error.status_code is not None:
                return "http_error"
            cause = error.__cause__
            if cause is not None and not isinstance(cause, TransportError):
                return TransportErrorHandler.classify_error(cause)
            return "relay_error"
        if isinstance(error, httpx.HTTPStatusError):
            if error.response.status_code == RATE_LIMIT_STATUS:
                return "rate_limited"
            return "http_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return "timeout_error"
        if isinstance(error, ConnectionError | OSError | httpx.TransportError):
            return "connection_error"
        if isinstance(error, ValidationError):
            return "validation_error"
        if isinstance(error, StreamRelayError):
            return "relay_error"
        return "unknown_error"

    @staticmethod
    def describe(error: BaseException) -> dict[str, Any]:
        """Build structured log fields for an error."""
        fields: dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_category": TransportErrorHandler.classify_error(error),
            "error_message": str(error),
        }
        if isinstance(error, TransportError):
            fields["operation"] = error.operation
            if error.status_code is not None:
                fields["status_code"] = error.status_code
            if error.retry_after is not None:
                fields["retry_after"] = error.retry_after
        return fields


def _elapsed_ms(started: float | None) -> dict[str, Any]:
    if started is None:
        return {}
    return {"duration_ms": round((time.perf_counter() - started) * 1000, 2)}


def log_operation(
    operation: str,
    *,
    log_args: bool = False,
    log_result: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Wrap an async transport call with start/finish debug logs.

    Failures are logged at warning level with their error category and
    re-raised unchanged.

    Args:
        operation: Name logged as ``operation``
        log_args: Include positional (minus ``self``) and keyword arguments
        log_result: Include the return value in the completion log
        log_timing: Include ``duration_ms``
        context: Extra fields bound to every log line
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bound = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )
            if log_args:
                bound.debug("Operation started", args=args[1:], kwargs=kwargs)
            else:
                bound.debug("Operation started")

            started = time.perf_counter() if log_timing else None
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                bound.warning(
                    "Operation failed",
                    **TransportErrorHandler.describe(e),
                    **_elapsed_ms(started),
                )
                raise

            done = _elapsed_ms(started)
            if log_result:
                done["result"] = result
            bound.debug("Operation finished", **done)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """Log the start, end and failure of a block; yields the bound logger."""
    bound = logger.bind(operation=operation, **(context or {}))
    bound.debug("Operation started")
    started = time.perf_counter() if log_timing else None

    try:
        yield bound
    except Exception as e:
        bound.warning(
            "Operation failed",
            **TransportErrorHandler.describe(e),
            **_elapsed_ms(started),
        )
        raise

    bound.debug("Operation finished", **_elapsed_ms(started))


class ContextualLogger:
    """Structlog logger carrying fixed fields, e.g. a session id."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = dict(base_context or {})
        self._logger = logger.bind(**self.base_context)

    def warning(self, message: str, **fields: Any) -> None:
        self._logger.warning(message, **fields)
