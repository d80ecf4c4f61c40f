"""runstream exception hierarchy.

Base exceptions for every layer of the client with correlation ID support.

Usage:
    from runstream.exceptions import EventDecodeError, RunApiError

    try:
        response = await api.start_stream(request)
    except RunApiError as e:
        logger.warning("Start failed (%s): %s", e.correlation_id, e)
"""

import uuid


class RunStreamError(Exception):
    """Base exception for all runstream errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class EventDecodeError(RunStreamError):
    """A stream message could not be decoded into a typed event.

    The raw payload is kept so the caller can log a truncated copy.
    """

    def __init__(self, message: str, *, raw: str | bytes = "", **kwargs):
        self.raw = raw if isinstance(raw, str) else raw.decode("utf-8", errors="replace")
        super().__init__(message, **kwargs)


class RunApiError(RunStreamError):
    """Errors from the boundary REST calls that start, execute or cancel a run.

    ``status_code`` is set for non-2xx responses and left as None for
    network-level failures.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message, correlation_id=correlation_id)


class StreamConnectionError(RunStreamError):
    """Errors from the run event stream transport."""

    def __init__(self, message: str, *, run_id: str | None = None, **kwargs):
        self.run_id = run_id
        super().__init__(message, **kwargs)


class ConfigurationError(RunStreamError):
    """Errors from client configuration."""

    pass
