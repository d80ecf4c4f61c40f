"""Typed events delivered over the run event stream.

Every wire message has the shape ``{"type": str, "data": object, "id": int?}``.
Each known ``type`` maps to one event model with a concrete payload model;
``StreamEvent`` is the discriminated union over them. Types this client does
not know about decode to :class:`IgnoredEvent` instead of failing.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from runstream.models import Finding, PlanStatus, Task


class _Payload(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class SessionData(_Payload):
    session_id: str = ""

    @field_validator("session_id", mode="before")
    @classmethod
    def _none_session(cls, value: Any) -> Any:
        return "" if value is None else value


class StatusData(_Payload):
    message: str = ""

    @field_validator("message", mode="before")
    @classmethod
    def _none_message(cls, value: Any) -> Any:
        return "" if value is None else value


class PlanData(_Payload):
    """Payload of ``plan`` and ``plan-update`` events.

    The server sends either the plan fields at the top level or nested under
    ``plan`` next to ``planId``/``status``; both shapes are accepted.
    """

    objective: str = ""
    tasks: tuple[Task, ...] = ()
    findings: tuple[Finding, ...] = ()
    plan_id: str = ""
    status: PlanStatus | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested_plan(cls, value: Any) -> Any:
        if isinstance(value, dict) and isinstance(value.get("plan"), dict):
            merged = {k: v for k, v in value.items() if k != "plan"}
            for key, item in value["plan"].items():
                merged.setdefault(key, item)
            return merged
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _lenient_status(cls, value: Any) -> PlanStatus | None:
        return PlanStatus.parse(value)

    @field_validator("objective", "plan_id", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tasks", "findings", mode="before")
    @classmethod
    def _none_to_tuple(cls, value: Any) -> Any:
        return () if value is None else value


class TaskStartData(_Payload):
    task_id: str | None = None
    role: str | None = None
    description: str | None = None
    expected_output: str | None = None


class TaskOutputData(_Payload):
    task_id: str | None = None
    role: str | None = None
    chunk: str = ""
    sequence: int = 0
    done: bool = False

    @field_validator("chunk", mode="before")
    @classmethod
    def _none_chunk(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("sequence", mode="before")
    @classmethod
    def _none_sequence(cls, value: Any) -> Any:
        return 0 if value is None else value


class TaskCompleteData(_Payload):
    task_id: str | None = None
    role: str | None = None


class FinalData(_Payload):
    final_answer: str = ""

    @field_validator("final_answer", mode="before")
    @classmethod
    def _none_answer(cls, value: Any) -> Any:
        return "" if value is None else value


class RunCompleteData(_Payload):
    status: str | None = None


class RunCancelData(_Payload):
    message: str | None = None


class ErrorData(_Payload):
    message: str | None = None


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id(cls, value: Any) -> int | None:
        # Only a JSON number counts as a resumption id
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)

    @model_validator(mode="before")
    @classmethod
    def _missing_data(cls, value: Any) -> Any:
        if isinstance(value, dict) and value.get("data") is None:
            return {**value, "data": {}}
        return value


class SessionEvent(_Event):
    type: Literal["session"]
    data: SessionData


class StatusEvent(_Event):
    type: Literal["status"]
    data: StatusData


class PlanEvent(_Event):
    type: Literal["plan"]
    data: PlanData


class PlanUpdateEvent(_Event):
    type: Literal["plan-update"]
    data: PlanData


class TaskStartEvent(_Event):
    type: Literal["task-start"]
    data: TaskStartData


class TaskOutputEvent(_Event):
    type: Literal["task-output"]
    data: TaskOutputData


class TaskCompleteEvent(_Event):
    type: Literal["task-complete"]
    data: TaskCompleteData


class FinalEvent(_Event):
    type: Literal["final"]
    data: FinalData


class RunCompleteEvent(_Event):
    type: Literal["run-complete"]
    data: RunCompleteData


class RunCancelEvent(_Event):
    type: Literal["run-cancel"]
    data: RunCancelData


class ErrorEvent(_Event):
    type: Literal["error"]
    data: ErrorData


class IgnoredEvent(_Event):
    """Catch-all for event types this client does not handle."""

    type: str
    data: Any = None


StreamEvent = Annotated[
    SessionEvent
    | StatusEvent
    | PlanEvent
    | PlanUpdateEvent
    | TaskStartEvent
    | TaskOutputEvent
    | TaskCompleteEvent
    | FinalEvent
    | RunCompleteEvent
    | RunCancelEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

AnyEvent = (
    SessionEvent
    | StatusEvent
    | PlanEvent
    | PlanUpdateEvent
    | TaskStartEvent
    | TaskOutputEvent
    | TaskCompleteEvent
    | FinalEvent
    | RunCompleteEvent
    | RunCancelEvent
    | ErrorEvent
    | IgnoredEvent
)

KNOWN_EVENT_TYPES = frozenset(
    {
        "session",
        "status",
        "plan",
        "plan-update",
        "task-start",
        "task-output",
        "task-complete",
        "final",
        "run-complete",
        "run-cancel",
        "error",
    }
)


__all__ = [
    "KNOWN_EVENT_TYPES",
    "AnyEvent",
    "ErrorData",
    "ErrorEvent",
    "FinalData",
    "FinalEvent",
    "IgnoredEvent",
    "PlanData",
    "PlanEvent",
    "PlanUpdateEvent",
    "RunCancelData",
    "RunCancelEvent",
    "RunCompleteData",
    "RunCompleteEvent",
    "SessionData",
    "SessionEvent",
    "StatusData",
    "StatusEvent",
    "StreamEvent",
    "TaskCompleteData",
    "TaskCompleteEvent",
    "TaskOutputData",
    "TaskOutputEvent",
    "TaskStartData",
    "TaskStartEvent",
]
