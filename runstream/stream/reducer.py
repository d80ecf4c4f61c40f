"""Run state reducer.

Applies decoded stream events and run-control commands to a
:class:`RunState`, producing the next state. States are never modified in
place; an unchanged state is returned as the same object so callers can
detect transitions by identity.

Run phases::

    IDLE -> AWAITING_PLAN -> PLAN_READY -> EXECUTING -> COMPLETED | CANCELLED | ERRORED

Once a run reaches a terminal phase, further events for it are discarded,
as are events tagged with a run id other than the one the state is bound to.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from runstream.models import (
    ConnectionStatus,
    Message,
    Plan,
    PlanStatus,
    RunPhase,
    RunState,
)
from runstream.stream.events import (
    AnyEvent,
    ErrorEvent,
    FinalEvent,
    IgnoredEvent,
    PlanData,
    PlanEvent,
    PlanUpdateEvent,
    RunCancelEvent,
    RunCompleteEvent,
    SessionEvent,
    StatusEvent,
    TaskCompleteEvent,
    TaskOutputEvent,
    TaskStartEvent,
)
from runstream.stream.reassembler import ReassembledOutput, TaskOutputReassembler

logger = logging.getLogger(__name__)

RUN_CANCELLED_MESSAGE = "Run cancelled."
CANCEL_SUCCESS_MESSAGE = "Agent run canceled successfully."
UNKNOWN_ERROR_MESSAGE = "Unknown error."


@dataclass(frozen=True)
class Reduction:
    """Outcome of applying one event."""

    state: RunState
    close_connection: bool = False
    discarded: bool = False


def format_task_output(output: ReassembledOutput) -> str:
    """Chat message text for a finished task, prefixed with its role when known."""
    if output.role:
        return f"**{output.role}**\n\n{output.text}"
    return output.text


def _plan_from(data: PlanData) -> Plan:
    return Plan(
        objective=data.objective,
        tasks=data.tasks,
        findings=data.findings,
        plan_id=data.plan_id,
        status=data.status or PlanStatus.DRAFT,
    )


class RunStateReducer:
    """Applies events and commands to run state.

    Owns the task output reassembler, which is the only mutable piece of
    the pipeline; everything else lives in the immutable state.
    """

    def __init__(self, reassembler: TaskOutputReassembler | None = None) -> None:
        self.reassembler = reassembler or TaskOutputReassembler()
        self._handlers: dict[type, Callable[[RunState, Any], Reduction]] = {
            SessionEvent: self._on_session,
            StatusEvent: self._on_status,
            PlanEvent: self._on_plan,
            PlanUpdateEvent: self._on_plan_update,
            TaskStartEvent: self._on_task_start,
            TaskOutputEvent: self._on_task_output,
            TaskCompleteEvent: self._on_task_complete,
            FinalEvent: self._on_final,
            RunCompleteEvent: self._on_run_complete,
            RunCancelEvent: self._on_run_cancel,
            ErrorEvent: self._on_error,
        }

    # ------------------------------------------------------------------
    # Stream events
    # ------------------------------------------------------------------

    def reduce(self, state: RunState, event: AnyEvent, run_id: str | None = None) -> Reduction:
        """Apply one decoded event.

        Args:
            state: Current state.
            event: Decoded stream event.
            run_id: Run the event was received for. Events for any run other
                than ``state.active_run_id`` are discarded.

        Returns:
            The next state and whether the stream should now be closed.
        """
        if run_id is not None and run_id != state.active_run_id:
            logger.debug("Discarding %s event for superseded run %s", event.type, run_id)
            return Reduction(state, discarded=True)
        if state.phase.is_terminal:
            logger.debug("Discarding %s event after run reached %s", event.type, state.phase)
            return Reduction(state, discarded=True)

        handler = self._handlers.get(type(event))
        if handler is None:
            if not isinstance(event, IgnoredEvent):
                logger.debug("No handler for %s event", event.type)
            result = Reduction(state)
        else:
            result = handler(state, event)

        if result.close_connection:
            self.reassembler.clear()

        if event.id is not None and event.id > result.state.last_event_id:
            result = Reduction(
                result.state.model_copy(update={"last_event_id": event.id}),
                close_connection=result.close_connection,
            )
        return result

    def _on_session(self, state: RunState, event: SessionEvent) -> Reduction:
        session_id = event.data.session_id
        if state.session_id or not session_id:
            return Reduction(state)
        return Reduction(state.model_copy(update={"session_id": session_id}))

    def _on_status(self, state: RunState, event: StatusEvent) -> Reduction:
        if event.data.message == state.status_message:
            return Reduction(state)
        return Reduction(state.model_copy(update={"status_message": event.data.message}))

    def _on_plan(self, state: RunState, event: PlanEvent) -> Reduction:
        plan = _plan_from(event.data)
        if state.plan is not None:
            # A re-sent plan never moves the status backward
            plan = plan.model_copy(update={"status": state.plan.status.advance(plan.status)})
        return Reduction(
            state.model_copy(update={"plan": plan, "phase": self._phase_with_plan(state.phase)})
        )

    def _on_plan_update(self, state: RunState, event: PlanUpdateEvent) -> Reduction:
        if state.plan is None:
            plan = _plan_from(event.data)
        else:
            data = event.data
            plan = state.plan.merged_with(
                objective=data.objective,
                tasks=data.tasks,
                findings=data.findings,
                plan_id=data.plan_id,
                status=data.status,
            )
        return Reduction(
            state.model_copy(update={"plan": plan, "phase": self._phase_with_plan(state.phase)})
        )

    @staticmethod
    def _phase_with_plan(phase: RunPhase) -> RunPhase:
        if phase in (RunPhase.IDLE, RunPhase.AWAITING_PLAN):
            return RunPhase.PLAN_READY
        return phase

    def _on_task_start(self, state: RunState, event: TaskStartEvent) -> Reduction:
        task_id = event.data.task_id
        if not task_id:
            return Reduction(state)
        active = {**state.active_tasks, task_id: event.data.role or "worker"}
        return Reduction(state.model_copy(update={"active_tasks": active}))

    def _on_task_output(self, state: RunState, event: TaskOutputEvent) -> Reduction:
        data = event.data
        if not data.task_id:
            logger.debug("Dropping task-output chunk without taskId")
            return Reduction(state)
        output = self.reassembler.apply(
            data.task_id,
            data.role,
            data.sequence,
            data.chunk,
            done=data.done,
        )
        if output is None:
            return Reduction(state)
        return Reduction(state.with_message(Message.agent(format_task_output(output))))

    def _on_task_complete(self, state: RunState, event: TaskCompleteEvent) -> Reduction:
        task_id = event.data.task_id
        if not task_id or task_id not in state.active_tasks:
            return Reduction(state)
        active = {k: v for k, v in state.active_tasks.items() if k != task_id}
        return Reduction(state.model_copy(update={"active_tasks": active}))

    def _on_final(self, state: RunState, event: FinalEvent) -> Reduction:
        if event.data.final_answer:
            state = state.with_message(Message.agent(event.data.final_answer))
        return Reduction(
            self._terminate(state, RunPhase.COMPLETED, PlanStatus.COMPLETED),
            close_connection=True,
        )

    def _on_run_complete(self, state: RunState, event: RunCompleteEvent) -> Reduction:
        raw_status = (event.data.status or "").strip().upper()
        plan_status = PlanStatus.parse(raw_status)
        if plan_status is PlanStatus.CANCELLED:
            phase = RunPhase.CANCELLED
        elif raw_status in ("FAILED", "ERROR"):
            phase = RunPhase.ERRORED
        else:
            phase = RunPhase.COMPLETED
        return Reduction(self._terminate(state, phase, plan_status), close_connection=True)

    def _on_run_cancel(self, state: RunState, event: RunCancelEvent) -> Reduction:
        state = state.with_message(Message.system(RUN_CANCELLED_MESSAGE))
        return Reduction(
            self._terminate(state, RunPhase.CANCELLED, PlanStatus.CANCELLED),
            close_connection=True,
        )

    def _on_error(self, state: RunState, event: ErrorEvent) -> Reduction:
        state = state.with_message(Message.system(event.data.message or UNKNOWN_ERROR_MESSAGE))
        return Reduction(self._terminate(state, RunPhase.ERRORED, None), close_connection=True)

    @staticmethod
    def _terminate(state: RunState, phase: RunPhase, plan_status: PlanStatus | None) -> RunState:
        plan = state.plan
        if plan is not None and plan_status is not None:
            plan = plan.with_status(plan_status)
        return state.model_copy(
            update={
                "phase": phase,
                "plan": plan,
                "is_working": False,
                "active_tasks": {},
            }
        )

    # ------------------------------------------------------------------
    # Run-control commands
    # ------------------------------------------------------------------

    def start_request(self, state: RunState, message: str | None = None) -> RunState:
        """Reset per-run state for a brand-new top-level request.

        The transcript is kept; the plan, session, task buffers and stream
        binding are discarded.
        """
        self.reassembler.clear()
        if message:
            state = state.with_message(Message.user(message))
        return state.model_copy(
            update={
                "plan": None,
                "session_id": "",
                "active_run_id": None,
                "last_event_id": 0,
                "phase": RunPhase.AWAITING_PLAN,
                "is_working": True,
                "status_message": "",
                "active_tasks": {},
            }
        )

    def bind_run(self, state: RunState, run_id: str) -> RunState:
        """Bind the state to the run the stream is about to be opened for."""
        if run_id == state.active_run_id:
            return state
        self.reassembler.clear()
        return state.model_copy(update={"active_run_id": run_id, "last_event_id": 0})

    def begin_execution(self, state: RunState, run_id: str | None = None) -> RunState:
        """PLAN_READY -> EXECUTING for an approved plan."""
        plan = state.plan.with_status(PlanStatus.EXECUTING) if state.plan else None
        state = state.model_copy(
            update={
                "plan": plan,
                "phase": RunPhase.EXECUTING,
                "is_working": True,
                "active_tasks": {},
            }
        )
        return self.bind_run(state, run_id) if run_id else state

    def apply_draft_plan(self, state: RunState, plan: Plan, session_id: str = "") -> RunState:
        """Store a plan returned for review by a plan-only request."""
        return state.model_copy(
            update={
                "plan": plan,
                "session_id": state.session_id or session_id,
                "phase": RunPhase.PLAN_READY,
                "is_working": False,
            }
        )

    def apply_sync_result(
        self,
        state: RunState,
        plan: Plan | None,
        final_answer: str | None,
    ) -> RunState:
        """Store the result of a blocking run."""
        if plan is not None:
            state = state.model_copy(update={"plan": plan})
        if final_answer:
            state = state.with_message(Message.agent(final_answer))
        return self._terminate(state, RunPhase.COMPLETED, PlanStatus.COMPLETED)

    def fail_request(self, state: RunState, message: str) -> RunState:
        """A boundary call that starts or executes a run failed."""
        self.reassembler.clear()
        state = state.with_message(Message.system(message))
        return self._terminate(state, RunPhase.ERRORED, None)

    def cancel_succeeded(self, state: RunState, message: str | None = None) -> RunState:
        """Optimistic cancel: stop working and drop the plan."""
        self.reassembler.clear()
        state = state.with_message(Message.system(message or CANCEL_SUCCESS_MESSAGE))
        return state.model_copy(
            update={
                "plan": None,
                "phase": RunPhase.CANCELLED,
                "is_working": False,
                "active_tasks": {},
            }
        )

    def cancel_failed(self, state: RunState, message: str) -> RunState:
        """The run is presumed still active after a failed cancel."""
        state = state.with_message(Message.system(message))
        return state.model_copy(update={"is_working": True})

    def with_connection(self, state: RunState, status: ConnectionStatus) -> RunState:
        if state.connection is status:
            return state
        return state.model_copy(update={"connection": status})

    def clear(self, state: RunState) -> RunState:
        """Discard everything, including the transcript."""
        self.reassembler.clear()
        return RunState(connection=state.connection)


__all__ = [
    "CANCEL_SUCCESS_MESSAGE",
    "RUN_CANCELLED_MESSAGE",
    "UNKNOWN_ERROR_MESSAGE",
    "Reduction",
    "RunStateReducer",
    "format_task_output",
]
