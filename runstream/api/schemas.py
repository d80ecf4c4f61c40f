"""Request/response models for the orchestration server's run endpoints.

Wire fields are camelCase; models expose snake_case attributes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from runstream.models import Finding, Plan, PlanStatus, Task


class _Schema(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class ChatRequest(_Schema):
    """Body of the start-stream, start-sync and plan-only calls."""

    message: str = Field(..., min_length=1)
    provider: str | None = None
    model: str | None = None


class PlanExecuteRequest(_Schema):
    """Body of the execute-plan call."""

    plan_id: str = Field(..., min_length=1)
    feedback: str | None = None
    provider: str | None = None
    model: str | None = None


class ChatStreamResponse(_Schema):
    run_id: str | None = None
    created_at: datetime | None = None


class ChatResponse(_Schema):
    """Result of a blocking run."""

    request_id: str | None = None
    plan: Plan | None = None
    final_answer: str | None = None


class PlanResponse(_Schema):
    """Draft plan returned for review."""

    request_id: str | None = None
    objective: str = ""
    tasks: list[Task] = Field(default_factory=list)
    findings: list[Finding] = Field(default_factory=list)
    plan_id: str | None = None
    session_id: str | None = None
    status: PlanStatus | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _lenient_status(cls, value: Any) -> PlanStatus | None:
        return PlanStatus.parse(value)

    @field_validator("objective", mode="before")
    @classmethod
    def _none_objective(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("tasks", "findings", mode="before")
    @classmethod
    def _none_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def has_plan(self) -> bool:
        return bool(self.objective or self.tasks)

    def to_plan(self) -> Plan:
        return Plan(
            objective=self.objective,
            tasks=tuple(self.tasks),
            findings=tuple(self.findings),
            plan_id=self.plan_id or "",
            status=self.status or PlanStatus.DRAFT,
        )


class PlanExecuteResponse(_Schema):
    """Either a run id to stream, or the final answer of a blocking execution."""

    run_id: str | None = None
    final_answer: str | None = None


class CancelRunResponse(_Schema):
    status: str = ""
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == "success"


__all__ = [
    "CancelRunResponse",
    "ChatRequest",
    "ChatResponse",
    "ChatStreamResponse",
    "PlanExecuteRequest",
    "PlanExecuteResponse",
    "PlanResponse",
]
