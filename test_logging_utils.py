#!/usr/bin/env python3
"""
Test script for logging utilities.

This validates that error classification and operation logging work correctly.
"""

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from streamrelay.exceptions import (
    CallbackOrderError,
    PlaceholderCreationError,
    TransportEditError,
)
from streamrelay.logging_utils import (
    ContextualLogger,
    TransportErrorHandler,
    configure_logging,
    log_operation,
    operation_context,
)


class TestTransportErrorHandler:
    """Test the TransportErrorHandler class."""

    def test_classify_rate_limit(self):
        """Test classification of a 429 transport error."""
        error = PlaceholderCreationError("slow down", status_code=429)
        assert TransportErrorHandler.classify_error(error) == "rate_limited"

    def test_classify_http_status(self):
        """Test classification of other HTTP status errors."""
        error = TransportEditError("server error", status_code=502)
        assert TransportErrorHandler.classify_error(error) == "http_error"

    def test_classify_uses_cause_of_wrapped_error(self):
        """Test that wrapped errors are classified by their cause."""
        wrapped = TransportEditError("edit failed")
        wrapped.__cause__ = TimeoutError("timed out")
        assert TransportErrorHandler.classify_error(wrapped) == "timeout_error"

    def test_classify_httpx_errors(self):
        """Test classification of httpx exceptions."""
        request = httpx.Request("PATCH", "https://discord.test/x")
        assert TransportErrorHandler.classify_error(
            httpx.ReadTimeout("read timeout", request=request)
        ) == "timeout_error"
        assert TransportErrorHandler.classify_error(
            httpx.ConnectError("refused", request=request)
        ) == "connection_error"
        response = httpx.Response(429, request=request)
        assert TransportErrorHandler.classify_error(
            httpx.HTTPStatusError("429", request=request, response=response)
        ) == "rate_limited"

    def test_classify_connection_error(self):
        """Test classification of ConnectionError."""
        assert TransportErrorHandler.classify_error(
            ConnectionError("Network unreachable")
        ) == "connection_error"

    def test_classify_validation_error(self):
        """Test classification of ValidationError."""
        class Model(BaseModel):
            count: int

        with pytest.raises(ValidationError) as exc_info:
            Model(count="many")
        assert TransportErrorHandler.classify_error(exc_info.value) == "validation_error"

    def test_classify_relay_error(self):
        """Test classification of relay errors."""
        assert TransportErrorHandler.classify_error(
            CallbackOrderError("out of order")
        ) == "relay_error"

    def test_classify_unknown_error(self):
        """Test classification of unknown errors."""
        assert TransportErrorHandler.classify_error(
            RuntimeError("Unknown error")
        ) == "unknown_error"

    def test_describe_includes_transport_context(self):
        """Test structured fields for a transport error."""
        error = PlaceholderCreationError("limited", status_code=429, retry_after=2.0)

        fields = TransportErrorHandler.describe(error)

        assert fields == {
            "error_type": "PlaceholderCreationError",
            "error_category": "rate_limited",
            "error_message": "limited",
            "operation": "reply",
            "status_code": 429,
            "retry_after": 2.0,
        }


class TestDecorators:
    """Test logging decorators."""

    @pytest.mark.asyncio
    async def test_log_operation_success(self):
        """Test log_operation decorator with successful operation."""
        @log_operation("test_operation", log_timing=True, log_result=True)
        async def successful_function():
            return "success"

        assert await successful_function() == "success"

    @pytest.mark.asyncio
    async def test_log_operation_with_error(self):
        """Test log_operation decorator with error."""
        @log_operation("test_operation", log_timing=True)
        async def failing_function():
            raise ValueError("Test error")

        with pytest.raises(ValueError, match="Test error"):
            await failing_function()

    @pytest.mark.asyncio
    async def test_log_operation_preserves_metadata(self):
        """Test that log_operation keeps the wrapped function's metadata."""
        @log_operation("test_operation", log_args=True)
        async def documented(value):
            """Doc."""
            return value

        assert documented.__name__ == "documented"
        assert await documented(3) == 3


class TestContextManager:
    """Test operation context manager."""

    @pytest.mark.asyncio
    async def test_operation_context_success(self):
        """Test operation_context with successful operation."""
        async with operation_context("test_operation", log_timing=True) as logger:
            assert logger is not None

    @pytest.mark.asyncio
    async def test_operation_context_with_error(self):
        """Test operation_context with error."""
        with pytest.raises(ValueError, match="Test error"):
            async with operation_context("test_operation", log_timing=True):
                raise ValueError("Test error")


class TestContextualLogger:
    """Test ContextualLogger."""

    def test_context_is_copied(self):
        """Test that the logger keeps its own copy of the bound context."""
        context = {"session_id": "abc"}
        contextual = ContextualLogger(context)
        context["session_id"] = "changed"

        assert contextual.base_context == {"session_id": "abc"}
        contextual.warning("message", detail="value")


def test_configure_logging_rejects_unknown_level():
    """Test that an unknown logging level is rejected."""
    with pytest.raises(ValueError, match="Unknown logging level"):
        configure_logging("LOUD")
