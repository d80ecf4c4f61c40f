"""Enums for run state."""

from enum import StrEnum


class PlanStatus(StrEnum):
    """Lifecycle of a plan. Only ever advances forward."""

    DRAFT = "DRAFT"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def rank(self) -> int:
        return _PLAN_STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (PlanStatus.COMPLETED, PlanStatus.CANCELLED)

    def advance(self, target: "PlanStatus") -> "PlanStatus":
        """Return ``target`` if it is a forward move from this status, else self.

        A terminal status is never replaced, not even by the other terminal one.
        """
        if self.is_terminal:
            return self
        return target if target.rank > self.rank else self

    @classmethod
    def parse(cls, value: object) -> "PlanStatus | None":
        """Lenient lookup for server-supplied status strings."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


_PLAN_STATUS_RANK = {
    PlanStatus.DRAFT: 0,
    PlanStatus.EXECUTING: 1,
    PlanStatus.COMPLETED: 2,
    PlanStatus.CANCELLED: 2,
}


class MessageKind(StrEnum):
    """Author of a chat message."""

    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class RunPhase(StrEnum):
    """Overall run state machine."""

    IDLE = "idle"
    AWAITING_PLAN = "awaiting_plan"
    PLAN_READY = "plan_ready"
    EXECUTING = "executing"
    # Terminal phases
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (RunPhase.COMPLETED, RunPhase.CANCELLED, RunPhase.ERRORED)


class ConnectionStatus(StrEnum):
    """Stream connection indicator shown by the view layer."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class RunMode(StrEnum):
    """How a run is started."""

    STREAM = "stream"
    SYNC = "sync"
    PLAN_ONLY = "plan-only"
