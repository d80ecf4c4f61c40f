"""Shared test fixtures for runstream.

Provides settings, a mocked boundary API client and a scripted websocket
connector so no test touches the network.
"""

from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from runstream.api.client import RunApiClient
from runstream.api.schemas import CancelRunResponse, ChatStreamResponse
from runstream.controller import RunController
from runstream.settings import Settings
from runstream.stream.connection import ConnectionManager
from tests.helpers.stream import FakeConnector, FakeSocket

WS_URL = "ws://orchestrator.test"


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with fast reconnects."""
    return Settings(
        environment="testing",
        api_url="http://orchestrator.test",
        ws_url=WS_URL,
        request_timeout=5.0,
        reconnect_base_delay=0.001,
        reconnect_max_delay=0.01,
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Mock get_settings() to return test settings."""
    from runstream import controller, settings

    monkeypatch.setattr(settings, "get_settings", lambda: test_settings)
    monkeypatch.setattr(controller, "get_settings", lambda: test_settings)
    return test_settings


# =============================================================================
# BOUNDARY API
# =============================================================================


@pytest.fixture
def mock_api() -> MagicMock:
    """Mock RunApiClient; stream starts return run-1 and cancels succeed."""
    api = MagicMock(spec=RunApiClient)
    api.start_stream = AsyncMock(return_value=ChatStreamResponse(run_id="run-1"))
    api.start_sync = AsyncMock()
    api.start_plan_only = AsyncMock()
    api.execute_plan = AsyncMock()
    api.cancel_run = AsyncMock(return_value=CancelRunResponse(status="success"))
    api.close = AsyncMock()
    return api


# =============================================================================
# STREAM
# =============================================================================


@pytest.fixture
def connector() -> FakeConnector:
    """Scripted websocket connector; append sockets to ``connector.scripted``."""
    return FakeConnector()


@pytest.fixture
def make_controller(
    mock_api: MagicMock,
    connector: FakeConnector,
    test_settings: Settings,
) -> Callable[..., RunController]:
    """Build a RunController wired to the mock API and the fake connector."""

    def _make(*sockets: FakeSocket | Exception) -> RunController:
        connector.scripted.extend(sockets)
        connection = ConnectionManager(
            WS_URL,
            api=mock_api,
            base_delay=0.001,
            max_delay=0.01,
            connect_fn=connector,
        )
        return RunController(mock_api, connection, settings=test_settings)

    return _make


@pytest.fixture
async def controller(
    make_controller: Callable[..., RunController],
) -> AsyncGenerator[RunController, None]:
    """A controller with no scripted sockets; closed after the test."""
    ctrl = make_controller()
    yield ctrl
    await ctrl.aclose()
