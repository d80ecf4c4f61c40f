"""Run controller: the public API used by the view layer.

Starts runs in one of three modes, drives plan approval and cancellation,
and publishes every run state transition to subscribers. The controller
owns its :class:`ConnectionManager`; stream events reach it through the
manager's single consumer task, so state is only ever updated from one
place at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from runstream.api.client import RunApiClient
from runstream.api.schemas import ChatRequest, PlanExecuteRequest
from runstream.exceptions import RunApiError
from runstream.models import ConnectionStatus, Message, PlanStatus, RunMode, RunState
from runstream.settings import Settings, get_settings
from runstream.stream.connection import ConnectionManager
from runstream.stream.events import AnyEvent
from runstream.stream.reducer import RunStateReducer

logger = logging.getLogger(__name__)

Subscriber = Callable[[RunState], None]

MISSING_RUN_ID_MESSAGE = "Missing run ID from server."
NO_PLAN_RETURNED_MESSAGE = "No plan returned."
NO_PLAN_TO_EXECUTE_MESSAGE = "No plan to execute."
NO_ACTIVE_RUN_MESSAGE = "No active run to cancel."


def _failure_message(action: str, exc: RunApiError) -> str:
    if exc.status_code is not None:
        return f"Failed to {action} ({exc.status_code})."
    return f"Failed to {action}: {exc}"


class RunController:
    """Facade over the boundary API, the stream connection and the reducer.

    Usage::

        controller = RunController()
        unsubscribe = controller.subscribe(render)
        await controller.start_run("Add a health endpoint")
        await controller.wait_until_idle()
        await controller.aclose()
    """

    def __init__(
        self,
        api: RunApiClient | None = None,
        connection: ConnectionManager | None = None,
        *,
        settings: Settings | None = None,
        reducer: RunStateReducer | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._api = api or RunApiClient(settings.api_url, settings.request_timeout)
        self._connection = connection or ConnectionManager(
            settings.stream_url,
            api=self._api,
            base_delay=settings.reconnect_base_delay,
            factor=settings.reconnect_factor,
            max_delay=settings.reconnect_max_delay,
        )
        self._connection.attach(
            on_event=self._on_stream_event,
            on_status=self._on_connection_status,
        )
        self._reducer = reducer or RunStateReducer()
        self._state = RunState()
        self._subscribers: list[Subscriber] = []
        self._idle = asyncio.Event()
        self._idle.set()

        self.provider = settings.default_provider
        self.model = settings.default_model

    # ------------------------------------------------------------------
    # State & subscription
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` to receive each new state.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, state: RunState) -> None:
        if state is self._state:
            return
        self._state = state
        if state.is_working:
            self._idle.clear()
        else:
            self._idle.set()
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("Run state subscriber failed")

    async def wait_until_idle(self, timeout: float | None = None) -> RunState:
        """Wait until the current run stops working.

        Raises:
            TimeoutError: If ``timeout`` elapses first.
        """
        async with asyncio.timeout(timeout):
            await self._idle.wait()
        return self._state

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    async def start_run(self, message: str, mode: RunMode = RunMode.STREAM) -> RunState:
        """Begin a new top-level request.

        Blank messages are ignored. Any open stream is closed and per-run
        state is reset; the transcript is kept.
        """
        trimmed = message.strip()
        if not trimmed:
            return self._state

        await self._connection.close()
        self._commit(self._reducer.start_request(self._state, trimmed))
        request = ChatRequest(message=trimmed, provider=self.provider, model=self.model)

        if mode is RunMode.SYNC:
            await self._run_sync(request)
        elif mode is RunMode.PLAN_ONLY:
            await self._request_plan(request)
        else:
            await self._start_stream(request)
        return self._state

    async def send_message(self, message: str) -> RunState:
        return await self.start_run(message, RunMode.STREAM)

    async def send_message_sync(self, message: str) -> RunState:
        return await self.start_run(message, RunMode.SYNC)

    async def request_plan(self, message: str) -> RunState:
        return await self.start_run(message, RunMode.PLAN_ONLY)

    async def approve_plan(self, feedback: str | None = None) -> RunState:
        """Execute the draft plan under review.

        The server answers with either a run id, which is streamed, or the
        final answer of a blocking execution.
        """
        plan = self._state.plan
        if plan is None or not plan.plan_id:
            self._commit(self._state.with_message(Message.system(NO_PLAN_TO_EXECUTE_MESSAGE)))
            return self._state
        if plan.status is not PlanStatus.DRAFT:
            self._commit(
                self._state.with_message(
                    Message.system(f"Plan is {plan.status.value.lower()} and cannot be executed.")
                )
            )
            return self._state

        await self._connection.close()
        self._commit(self._reducer.begin_execution(self._state))
        request = PlanExecuteRequest(
            plan_id=plan.plan_id,
            feedback=feedback or None,
            provider=self.provider,
            model=self.model,
        )
        try:
            response = await self._api.execute_plan(request)
        except RunApiError as exc:
            self._commit(self._reducer.fail_request(self._state, _failure_message("execute plan", exc)))
            return self._state

        if response.run_id:
            await self._open_stream(response.run_id)
        elif response.final_answer is not None:
            self._commit(self._reducer.apply_sync_result(self._state, None, response.final_answer))
        else:
            self._commit(self._reducer.fail_request(self._state, MISSING_RUN_ID_MESSAGE))
        return self._state

    async def revise_plan(self, feedback: str) -> RunState:
        """Execute the draft plan with revision feedback for the orchestrator."""
        trimmed = feedback.strip()
        if not trimmed:
            raise ValueError("Revision feedback must not be empty")
        self._commit(self._state.with_message(Message.user(trimmed)))
        return await self.approve_plan(trimmed)

    async def cancel_run(self) -> RunState:
        """Request cancellation of the active run.

        On success the run is optimistically stopped, the plan dropped and
        the stream closed. On failure the run is presumed still active; the
        stream stays open when the server refused, and is closed when the
        control call itself failed.
        """
        run_id = self._state.active_run_id
        if not run_id or self._state.phase.is_terminal:
            self._commit(self._state.with_message(Message.system(NO_ACTIVE_RUN_MESSAGE)))
            return self._state

        try:
            response = await self._connection.cancel(run_id)
        except RunApiError as exc:
            # The control path is unusable, so stop listening as well
            self._commit(self._reducer.cancel_failed(self._state, _failure_message("cancel run", exc)))
            await self._connection.close()
            return self._state

        if response.succeeded:
            self._commit(self._reducer.cancel_succeeded(self._state))
            await self._connection.close()
        else:
            reason = response.message or response.status or "unknown reason"
            self._commit(self._reducer.cancel_failed(self._state, f"Failed to cancel run: {reason}"))
        return self._state

    async def clear_chat(self) -> RunState:
        """Close the stream and discard all state, including the transcript."""
        await self._connection.close()
        self._commit(self._reducer.clear(self._state))
        return self._state

    async def aclose(self) -> None:
        """Close the stream and the HTTP client."""
        await self._connection.close()
        await self._api.close()

    # ------------------------------------------------------------------
    # Mode implementations
    # ------------------------------------------------------------------

    async def _start_stream(self, request: ChatRequest) -> None:
        try:
            response = await self._api.start_stream(request)
        except RunApiError as exc:
            self._commit(self._reducer.fail_request(self._state, _failure_message("start run", exc)))
            return
        if not response.run_id:
            self._commit(self._reducer.fail_request(self._state, MISSING_RUN_ID_MESSAGE))
            return
        await self._open_stream(response.run_id)

    async def _run_sync(self, request: ChatRequest) -> None:
        try:
            response = await self._api.start_sync(request)
        except RunApiError as exc:
            self._commit(self._reducer.fail_request(self._state, _failure_message("run", exc)))
            return
        self._commit(self._reducer.apply_sync_result(self._state, response.plan, response.final_answer))

    async def _request_plan(self, request: ChatRequest) -> None:
        try:
            response = await self._api.start_plan_only(request)
        except RunApiError as exc:
            self._commit(self._reducer.fail_request(self._state, _failure_message("plan", exc)))
            return
        if not response.has_plan:
            self._commit(self._reducer.fail_request(self._state, NO_PLAN_RETURNED_MESSAGE))
            return
        self._commit(
            self._reducer.apply_draft_plan(self._state, response.to_plan(), response.session_id or "")
        )

    async def _open_stream(self, run_id: str) -> None:
        self._commit(self._reducer.bind_run(self._state, run_id))
        await self._connection.connect(run_id)

    # ------------------------------------------------------------------
    # Connection callbacks
    # ------------------------------------------------------------------

    async def _on_stream_event(self, run_id: str, event: AnyEvent) -> None:
        reduction = self._reducer.reduce(self._state, event, run_id=run_id)
        self._commit(reduction.state)
        if reduction.close_connection:
            await self._connection.close()

    def _on_connection_status(self, status: ConnectionStatus) -> None:
        self._commit(self._reducer.with_connection(self._state, status))


__all__ = [
    "MISSING_RUN_ID_MESSAGE",
    "NO_ACTIVE_RUN_MESSAGE",
    "NO_PLAN_RETURNED_MESSAGE",
    "NO_PLAN_TO_EXECUTE_MESSAGE",
    "RunController",
]
