"""Run state: the single source of truth exposed to the view layer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .enums import ConnectionStatus, MessageKind, RunPhase
from .plan import Plan


class Message(BaseModel):
    """A chat transcript entry. Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    kind: MessageKind
    content: str

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(kind=MessageKind.USER, content=content)

    @classmethod
    def agent(cls, content: str) -> Message:
        return cls(kind=MessageKind.AGENT, content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(kind=MessageKind.SYSTEM, content=content)


class RunState(BaseModel):
    """Reconstructed view of one agent run.

    Instances are never modified; every transition produces a new state via
    ``model_copy`` so subscribers can compare identities to detect changes.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default="", description="Set once per run by a session event")
    plan: Plan | None = Field(default=None, description="Null until a plan arrives")
    messages: tuple[Message, ...] = Field(default=(), description="Append-only transcript")
    is_working: bool = Field(default=False, description="True until a terminal event")
    active_run_id: str | None = Field(default=None, description="Run the stream is bound to")
    last_event_id: int = Field(default=0, ge=0, description="Resumption watermark")
    phase: RunPhase = RunPhase.IDLE
    status_message: str = Field(default="", description="Latest server status text")
    active_tasks: dict[str, str] = Field(
        default_factory=dict,
        description="taskId -> role for tasks that started but have not completed",
    )
    connection: ConnectionStatus = ConnectionStatus.DISCONNECTED

    def with_message(self, message: Message) -> RunState:
        """Return a copy with ``message`` appended to the transcript."""
        return self.model_copy(update={"messages": (*self.messages, message)})
