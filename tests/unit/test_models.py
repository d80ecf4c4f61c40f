"""Tests for plan and run state models."""

import pytest
from pydantic import ValidationError

from runstream.models import Finding, Message, MessageKind, Plan, PlanStatus, RunPhase, RunState, Task


class TestPlanStatus:
    @pytest.mark.parametrize(
        ("current", "target", "expected"),
        [
            (PlanStatus.DRAFT, PlanStatus.EXECUTING, PlanStatus.EXECUTING),
            (PlanStatus.DRAFT, PlanStatus.COMPLETED, PlanStatus.COMPLETED),
            (PlanStatus.EXECUTING, PlanStatus.DRAFT, PlanStatus.EXECUTING),
            (PlanStatus.EXECUTING, PlanStatus.CANCELLED, PlanStatus.CANCELLED),
            (PlanStatus.COMPLETED, PlanStatus.CANCELLED, PlanStatus.COMPLETED),
            (PlanStatus.CANCELLED, PlanStatus.EXECUTING, PlanStatus.CANCELLED),
        ],
    )
    def test_only_moves_forward(self, current, target, expected):
        assert current.advance(target) is expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("DRAFT", PlanStatus.DRAFT),
            (" executing ", PlanStatus.EXECUTING),
            ("FAILED", None),
            (None, None),
            (3, None),
        ],
    )
    def test_parse(self, raw, expected):
        assert PlanStatus.parse(raw) is expected


class TestPlan:
    def test_wire_aliases(self):
        plan = Plan.model_validate(
            {
                "objective": "Obj",
                "planId": "p1",
                "tasks": [{"role": "r", "description": "d", "expectedOutput": "e"}],
                "findings": [{"role": "scout", "taskId": "t1", "output": "o"}],
            }
        )
        assert plan.plan_id == "p1"
        assert plan.tasks[0].expected_output == "e"
        assert plan.findings[0].task_id == "t1"

    def test_frozen(self):
        plan = Plan(objective="Obj")
        with pytest.raises(ValidationError):
            plan.objective = "changed"

    def test_merged_with_keeps_plan_id(self):
        plan = Plan(plan_id="p1").merged_with(plan_id="p2", tasks=[Task(role="r")])
        assert plan.plan_id == "p1"
        assert len(plan.tasks) == 1

    def test_merged_with_adopts_missing_plan_id(self):
        assert Plan().merged_with(plan_id="p2").plan_id == "p2"

    def test_with_status_backward_is_noop(self):
        plan = Plan(status=PlanStatus.EXECUTING)
        assert plan.with_status(PlanStatus.DRAFT) is plan

    def test_to_markdown(self):
        plan = Plan(
            objective="Ship it",
            tasks=(Task(role="coder", description="Write code"), Task(description="Review")),
            findings=(Finding(role="scout", output="Found a bug"),),
        )
        text = plan.to_markdown()
        assert "## Objective\nShip it" in text
        assert "- **1. coder**: Write code" in text
        assert "- **2. role**: Review" in text
        assert "## Findings" in text
        assert "- **scout**: Found a bug" in text

    def test_to_markdown_without_findings(self):
        assert "Findings" not in Plan(objective="x").to_markdown()


class TestRunState:
    def test_defaults(self):
        state = RunState()
        assert state.phase is RunPhase.IDLE
        assert state.plan is None
        assert state.messages == ()
        assert state.last_event_id == 0

    def test_with_message_returns_new_state(self):
        state = RunState()
        updated = state.with_message(Message.system("hi"))
        assert state.messages == ()
        assert updated.messages[0].kind is MessageKind.SYSTEM

    def test_watermark_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            RunState(last_event_id=-1)

    @pytest.mark.parametrize("phase", [RunPhase.COMPLETED, RunPhase.CANCELLED, RunPhase.ERRORED])
    def test_terminal_phases(self, phase):
        assert phase.is_terminal

    def test_non_terminal_phases(self):
        assert not RunPhase.EXECUTING.is_terminal
        assert not RunPhase.PLAN_READY.is_terminal
