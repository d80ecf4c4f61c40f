"""Tests for exception hierarchy and correlation ID support."""

import uuid

import pytest

from runstream.exceptions import (
    ConfigurationError,
    EventDecodeError,
    RunApiError,
    RunStreamError,
    StreamConnectionError,
)


class TestRunStreamError:
    """Test base RunStreamError class."""

    def test_auto_generates_correlation_id(self):
        """Test that correlation ID is auto-generated if not provided."""
        error = RunStreamError("Test error")
        assert isinstance(error.correlation_id, str)
        uuid.UUID(error.correlation_id)

    def test_accepts_custom_correlation_id(self):
        custom_id = str(uuid.uuid4())
        error = RunStreamError("Test error", correlation_id=custom_id)
        assert error.correlation_id == custom_id

    def test_unique_correlation_ids(self):
        assert RunStreamError("a").correlation_id != RunStreamError("b").correlation_id


class TestSubclasses:
    """Every layer's error is catchable as RunStreamError."""

    @pytest.mark.parametrize(
        "error",
        [
            EventDecodeError("bad", raw="{"),
            RunApiError("HTTP 500", "/api/chat", status_code=500),
            StreamConnectionError("dropped", run_id="run-1"),
            ConfigurationError("bad url"),
        ],
    )
    def test_is_run_stream_error(self, error):
        assert isinstance(error, RunStreamError)

    def test_decode_error_keeps_raw_text(self):
        error = EventDecodeError("bad", raw=b'{"type":')
        assert error.raw == '{"type":'

    def test_api_error_carries_status_and_endpoint(self):
        error = RunApiError("HTTP 503", "/api/chat/stream", status_code=503)
        assert error.status_code == 503
        assert error.endpoint == "/api/chat/stream"
        assert str(error) == "HTTP 503"

    def test_api_error_without_status_for_network_failures(self):
        error = RunApiError("Connection refused", "/api/chat")
        assert error.status_code is None
