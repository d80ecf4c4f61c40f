"""Boundary REST client for starting, executing and cancelling runs."""

from runstream.api.client import RunApiClient
from runstream.api.schemas import (
    CancelRunResponse,
    ChatRequest,
    ChatResponse,
    ChatStreamResponse,
    PlanExecuteRequest,
    PlanExecuteResponse,
    PlanResponse,
)

__all__ = [
    "CancelRunResponse",
    "ChatRequest",
    "ChatResponse",
    "ChatStreamResponse",
    "PlanExecuteRequest",
    "PlanExecuteResponse",
    "PlanResponse",
    "RunApiClient",
]
