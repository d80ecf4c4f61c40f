"""Decode raw stream messages into typed events."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from runstream.exceptions import EventDecodeError
from runstream.stream.events import KNOWN_EVENT_TYPES, AnyEvent, IgnoredEvent, StreamEvent

logger = logging.getLogger(__name__)

_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def decode_event(raw: str | bytes) -> AnyEvent:
    """Parse one wire message into a typed event.

    Args:
        raw: JSON text of a single ``{type, data, id?}`` message.

    Returns:
        The concrete event model, or :class:`IgnoredEvent` for a type this
        client does not handle.

    Raises:
        EventDecodeError: If the payload is not JSON, is not an object with a
            string ``type``, or its ``data`` does not match the event's shape.
    """
    try:
        payload: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EventDecodeError(f"Invalid JSON: {exc}", raw=raw) from exc

    if not isinstance(payload, dict):
        raise EventDecodeError("Stream message is not a JSON object", raw=raw)

    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise EventDecodeError("Stream message has no type", raw=raw)

    try:
        if event_type not in KNOWN_EVENT_TYPES:
            logger.debug("Ignoring unknown stream event type %r", event_type)
            return IgnoredEvent.model_validate(payload)
        return _event_adapter.validate_python(payload)
    except ValidationError as exc:
        raise EventDecodeError(
            f"Malformed {event_type!r} event: {exc.error_count()} validation error(s)",
            raw=raw,
        ) from exc


__all__ = ["decode_event"]
