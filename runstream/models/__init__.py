"""Run state models shared by the stream pipeline and the view layer."""

from .enums import ConnectionStatus, MessageKind, PlanStatus, RunMode, RunPhase
from .plan import Finding, Plan, Task
from .state import Message, RunState

__all__ = [
    "ConnectionStatus",
    "Finding",
    "Message",
    "MessageKind",
    "Plan",
    "PlanStatus",
    "RunMode",
    "RunPhase",
    "RunState",
    "Task",
]
