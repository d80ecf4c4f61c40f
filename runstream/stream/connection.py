"""Run event stream connection.

Maintains at most one WebSocket connection to the orchestration server's
run stream, addressed by run id and the resumption watermark. Inbound
messages go through an ``asyncio.Queue`` to a single consumer task that
decodes them and hands each event to the handler, so events are applied
strictly one at a time in arrival order.

Reconnects with exponential backoff when the server side drops the
connection; a client-initiated :meth:`ConnectionManager.close` suppresses
any further reconnect.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect

from runstream.api.schemas import CancelRunResponse
from runstream.exceptions import EventDecodeError, RunApiError, StreamConnectionError
from runstream.models import ConnectionStatus
from runstream.stream.decoder import decode_event

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from runstream.api.client import RunApiClient
    from runstream.stream.events import AnyEvent

    EventHandler = Callable[[str, AnyEvent], Awaitable[None] | None]
    StatusHandler = Callable[[ConnectionStatus], Awaitable[None] | None]

logger = logging.getLogger(__name__)

_BACKOFF_BASE = 0.5
_BACKOFF_FACTOR = 1.6
_BACKOFF_MAX = 8.0

STREAM_PATH = "/ws/stream"


def backoff_delay(
    attempt: int,
    *,
    base: float = _BACKOFF_BASE,
    factor: float = _BACKOFF_FACTOR,
    maximum: float = _BACKOFF_MAX,
) -> float:
    """Seconds to wait before reconnect attempt number ``attempt``."""
    return min(maximum, base * factor**attempt)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class ConnectionManager:
    """Owns the run stream connection.

    Usage::

        manager = ConnectionManager("ws://localhost:8080", on_event=handle, api=api)
        await manager.connect(run_id)
        # ... events flow into handle(run_id, event) ...
        await manager.close()
    """

    def __init__(
        self,
        ws_url: str,
        *,
        on_event: EventHandler | None = None,
        on_status: StatusHandler | None = None,
        api: RunApiClient | None = None,
        base_delay: float = _BACKOFF_BASE,
        factor: float = _BACKOFF_FACTOR,
        max_delay: float = _BACKOFF_MAX,
        connect_fn: Callable[[str], Any] = ws_connect,
    ) -> None:
        self._ws_url = ws_url.rstrip("/")
        self._on_event = on_event
        self._on_status = on_status
        self._api = api
        self._base_delay = base_delay
        self._factor = factor
        self._max_delay = max_delay
        self._connect_fn = connect_fn

        self._run_id: str | None = None
        self._last_event_id = 0
        self._attempt = 0
        self._closed_by_client = True
        self._ws: Any | None = None
        self._queue: asyncio.Queue[tuple[str, str | bytes]] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._status = ConnectionStatus.DISCONNECTED

    def attach(self, *, on_event: EventHandler, on_status: StatusHandler | None = None) -> None:
        """Install the handlers that receive decoded events and status changes."""
        self._on_event = on_event
        self._on_status = on_status

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def run_id(self) -> str | None:
        return self._run_id

    @property
    def last_event_id(self) -> int:
        return self._last_event_id

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        """True while a reader is running (connected or waiting to reconnect)."""
        return self._reader_task is not None and not self._reader_task.done()

    def stream_url(self, run_id: str) -> str:
        """URL for ``run_id`` carrying the current resumption watermark."""
        query = urlencode({"runId": run_id, "since": self._last_event_id})
        return f"{self._ws_url}{STREAM_PATH}?{query}"

    def next_delay(self) -> float:
        return backoff_delay(
            self._attempt,
            base=self._base_delay,
            factor=self._factor,
            maximum=self._max_delay,
        )

    async def connect(self, run_id: str) -> None:
        """Open the stream for ``run_id``, tearing down any existing connection.

        Reconnecting to the same run keeps the watermark so the server can
        skip already-processed events; a different run starts from zero.

        Raises:
            StreamConnectionError: If ``run_id`` is empty. Any open stream is
                left untouched.
        """
        if not run_id:
            raise StreamConnectionError("Cannot open run stream without a run id", run_id=run_id)
        await self.close()

        if run_id != self._run_id:
            self._last_event_id = 0
        self._run_id = run_id
        self._attempt = 0
        self._closed_by_client = False

        queue: asyncio.Queue[tuple[str, str | bytes]] = asyncio.Queue()
        self._queue = queue
        self._consumer_task = asyncio.create_task(self._consume(queue))
        self._reader_task = asyncio.create_task(self._read_loop(run_id, queue))
        logger.info("Opening run stream for %s (since=%d)", run_id, self._last_event_id)

    async def close(self) -> None:
        """Close the stream and suppress any scheduled reconnect.

        Safe to call from inside the event handler: the consumer finishes
        the current event and then exits.
        """
        was_open = not self._closed_by_client
        self._closed_by_client = True

        reader, self._reader_task = self._reader_task, None
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception:
                logger.debug("Error closing run stream socket", exc_info=True)

        self._queue = None
        consumer, self._consumer_task = self._consumer_task, None
        if consumer is not None and consumer is not asyncio.current_task() and not consumer.done():
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

        if was_open:
            logger.info("Run stream for %s closed", self._run_id)
            await self._set_status(ConnectionStatus.CLOSED)

    async def cancel(self, run_id: str) -> CancelRunResponse:
        """Ask the server to cancel ``run_id``.

        Does not close the stream; the caller decides what to do with the
        outcome. Only the run this manager is bound to can be cancelled.

        Raises:
            RunApiError: If the control call itself fails.
        """
        if not run_id or run_id != self._run_id:
            logger.warning("Refusing to cancel %s: active run is %s", run_id, self._run_id)
            return CancelRunResponse(status="not-active", message=f"Run {run_id} is not active.")
        if self._api is None:
            raise RunApiError("No API client configured for cancel", "cancel")
        return await self._api.cancel_run(run_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        if self._on_status is not None:
            try:
                await _maybe_await(self._on_status(status))
            except Exception:
                logger.exception("Connection status handler failed")

    async def _read_loop(self, run_id: str, queue: asyncio.Queue[tuple[str, str | bytes]]) -> None:
        """Connect, pump messages into the queue, reconnect on unexpected close."""
        await self._set_status(ConnectionStatus.CONNECTING)
        while not self._closed_by_client:
            try:
                async with self._connect_fn(self.stream_url(run_id)) as ws:
                    self._ws = ws
                    self._attempt = 0
                    await self._set_status(ConnectionStatus.CONNECTED)
                    logger.info("Run stream connected for %s", run_id)
                    async for raw in ws:
                        queue.put_nowait((run_id, raw))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.debug("Run stream error for %s: %s", run_id, exc)
            finally:
                self._ws = None

            if self._closed_by_client:
                break

            # Let the consumer catch up so the reconnect URL carries an
            # up-to-date watermark.
            await queue.join()
            if self._closed_by_client:
                break

            self._attempt += 1
            delay = self.next_delay()
            logger.warning("Run stream for %s disconnected, reconnecting in %.1fs", run_id, delay)
            await self._set_status(ConnectionStatus.RECONNECTING)
            await asyncio.sleep(delay)

    async def _consume(self, queue: asyncio.Queue[tuple[str, str | bytes]]) -> None:
        """Decode and dispatch queued messages one at a time."""
        while True:
            run_id, raw = await queue.get()
            try:
                await self._dispatch(run_id, raw)
            except Exception:
                logger.exception("Error processing run stream event")
            finally:
                queue.task_done()
            if queue is not self._queue:
                break

    async def _dispatch(self, run_id: str, raw: str | bytes) -> None:
        try:
            event = decode_event(raw)
        except EventDecodeError as exc:
            logger.warning("Failed to decode stream event (%s): %s", exc, exc.raw[:200])
            return

        if event.id is not None and event.id > self._last_event_id:
            self._last_event_id = event.id

        if self._on_event is not None:
            await _maybe_await(self._on_event(run_id, event))


__all__ = ["STREAM_PATH", "ConnectionManager", "backoff_delay"]
