"""runstream: client for streamed multi-agent orchestration runs.

Consumes a run's typed event stream over a WebSocket and reconstructs the
plan, per-task output and completion state for a view layer.
"""

from runstream.controller import RunController
from runstream.models import Message, MessageKind, Plan, PlanStatus, RunMode, RunPhase, RunState

__version__ = "0.1.0"

__all__ = [
    "Message",
    "MessageKind",
    "Plan",
    "PlanStatus",
    "RunController",
    "RunMode",
    "RunPhase",
    "RunState",
]
