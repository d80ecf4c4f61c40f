"""Plan models: the objective and task breakdown proposed by the orchestrator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import PlanStatus

_WIRE_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
    extra="ignore",
)


class Task(BaseModel):
    """One unit of work assigned to a role within a plan.

    Immutable once part of a plan; plan updates append tasks rather than
    editing existing ones.
    """

    model_config = _WIRE_CONFIG

    id: str | None = Field(default=None, description="Server-assigned task id, if any")
    role: str = Field(default="", description="Worker role that runs the task")
    description: str = Field(default="", description="What the worker should do")
    expected_output: str | None = Field(default=None, description="Expected deliverable")


class Finding(BaseModel):
    """Read-only discovery artifact attached to a plan."""

    model_config = _WIRE_CONFIG

    role: str = ""
    task_id: str | None = None
    output: str = ""


class Plan(BaseModel):
    """The orchestrator's proposed objective and task breakdown."""

    model_config = _WIRE_CONFIG

    objective: str = ""
    tasks: tuple[Task, ...] = ()
    findings: tuple[Finding, ...] = ()
    plan_id: str = ""
    status: PlanStatus = PlanStatus.DRAFT

    def merged_with(
        self,
        *,
        objective: str = "",
        tasks: tuple[Task, ...] | list[Task] = (),
        findings: tuple[Finding, ...] | list[Finding] = (),
        plan_id: str = "",
        status: PlanStatus | None = None,
    ) -> Plan:
        """Apply a plan update.

        New tasks and findings are appended after the existing ones, the
        objective is replaced only by a non-empty one, and the status only
        moves forward.
        """
        return self.model_copy(
            update={
                "objective": objective or self.objective,
                "tasks": (*self.tasks, *tasks),
                "findings": (*self.findings, *findings),
                "plan_id": self.plan_id or plan_id,
                "status": self.status.advance(status) if status else self.status,
            }
        )

    def with_status(self, status: PlanStatus) -> Plan:
        """Return a copy advanced to ``status`` (no-op for backward moves)."""
        advanced = self.status.advance(status)
        if advanced is self.status:
            return self
        return self.model_copy(update={"status": advanced})

    def to_markdown(self) -> str:
        """Render the plan for display in a chat transcript."""
        lines = ["## Objective", self.objective, "", "## Tasks"]
        for index, task in enumerate(self.tasks, start=1):
            lines.append(f"- **{index}. {task.role or 'role'}**: {task.description}")
        if self.findings:
            lines.extend(["", "## Findings"])
            for finding in self.findings:
                lines.append(f"- **{finding.role or 'worker'}**: {finding.output}")
        return "\n".join(lines)
