"""HTTP client for the orchestration server's run endpoints.

Wraps the boundary calls that start, execute and cancel a run. Every
failure (non-2xx, network error, unparseable body) is raised as
:class:`RunApiError` so the run controller can turn it into a transcript
message.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from runstream.api.schemas import (
    CancelRunResponse,
    ChatRequest,
    ChatResponse,
    ChatStreamResponse,
    PlanExecuteRequest,
    PlanExecuteResponse,
    PlanResponse,
)
from runstream.exceptions import RunApiError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0

_ResponseT = TypeVar("_ResponseT", bound=BaseModel)


class RunApiClient:
    """Calls the orchestration server's REST API.

    Usage::

        api = RunApiClient("http://localhost:8080")
        started = await api.start_stream(ChatRequest(message="Add a test"))
        await api.close()
    """

    _ALLOWED_SCHEMES = {"http", "https"}

    def __init__(
        self,
        base_url: str,
        timeout: float = _DEFAULT_TIMEOUT,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        from urllib.parse import urlparse

        parsed = urlparse(base_url)
        if parsed.scheme not in self._ALLOWED_SCHEMES:
            msg = f"Invalid URL scheme '{parsed.scheme}'. Only {self._ALLOWED_SCHEMES} allowed."
            raise ValueError(msg)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared httpx.AsyncClient."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release connections."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def start_stream(self, request: ChatRequest) -> ChatStreamResponse:
        """Start a streaming run; the response carries the run id to subscribe to."""
        return await self._post("/api/chat/stream", request, ChatStreamResponse)

    async def start_sync(self, request: ChatRequest) -> ChatResponse:
        """Run to completion in a single blocking call."""
        return await self._post("/api/chat", request, ChatResponse)

    async def start_plan_only(self, request: ChatRequest) -> PlanResponse:
        """Ask for a draft plan to review before execution."""
        return await self._post("/api/chat/plan", request, PlanResponse)

    async def execute_plan(self, request: PlanExecuteRequest) -> PlanExecuteResponse:
        """Execute a reviewed plan, optionally with revision feedback."""
        return await self._post("/api/chat/plan/execute", request, PlanExecuteResponse)

    async def cancel_run(self, run_id: str) -> CancelRunResponse:
        """Request cancellation of a running run."""
        return await self._post(
            f"/api/chat/runs/{quote(run_id, safe='')}/cancel",
            None,
            CancelRunResponse,
        )

    async def _post(
        self,
        path: str,
        body: BaseModel | None,
        response_model: type[_ResponseT],
    ) -> _ResponseT:
        payload = body.model_dump(by_alias=True, exclude_none=True) if body is not None else None
        data = await self._request("POST", path, json=payload)
        try:
            return response_model.model_validate(data or {})
        except ValidationError as exc:
            raise RunApiError(
                f"Unexpected response from {path}: {exc.error_count()} validation error(s)",
                path,
            ) from exc

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            RunApiError: On non-2xx status, network failure or invalid JSON.
        """
        client = self._get_http_client()
        try:
            response = await client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise RunApiError(f"Timeout after {self.timeout}s", path) from exc
        except httpx.HTTPError as exc:
            raise RunApiError(str(exc) or type(exc).__name__, path) from exc

        if not response.is_success:
            logger.warning("%s %s failed with HTTP %d", method, path, response.status_code)
            raise RunApiError(
                f"HTTP {response.status_code}",
                path,
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RunApiError(f"Invalid JSON response from {path}", path) from exc


__all__ = ["RunApiClient"]
