"""Tests for the HTTP control surface."""

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiohttp import test_utils

from probe_dispatcher.adapters.driven.metrics.http_metrics import Metrics
from probe_dispatcher.adapters.driving.control_server import create_app, extract_token
from probe_dispatcher.core.dispatcher import Dispatcher
from probe_dispatcher.ports.http import ProbeRequest, ProbeResponse
from probe_dispatcher.ports.settings import QueryParam, SelectionStrategy, SettingsPort

__all__ = []

SECRET = "s3cret"


async def fake_fetch(req: ProbeRequest) -> ProbeResponse:
    """Transport stand-in that answers 200 for every URL."""
    return ProbeResponse(status=200, url=req.url, reason="OK")


def make_settings(**overrides: object) -> SettingsPort:
    """Build control surface settings with test defaults."""
    values: dict[str, object] = {
        "schedule": "*/5 * * * *",
        "base_url": "https://h",
        "endpoints": ("a", "b"),
        "query_params": (QueryParam(key="x", range=10),),
        "strategy": SelectionStrategy.RANDOM,
        "outbound_token": "out",
        "inbound_token": SECRET,
    }
    values.update(overrides)
    return SettingsPort(**values)  # type: ignore[arg-type]


@pytest.fixture
def fetch() -> AsyncMock:
    """Spy transport shared by the dispatcher under test."""
    return AsyncMock(side_effect=fake_fetch)


@pytest_asyncio.fixture
async def client(fetch: AsyncMock) -> AsyncIterator[test_utils.TestClient]:
    """Test client for a fully configured control surface."""
    settings = make_settings()
    app = create_app(settings, Dispatcher(settings, fetch))
    async with test_utils.TestClient(test_utils.TestServer(app)) as c:
        yield c


@pytest.mark.parametrize(
    ("header", "token"),
    [("Bearer abc", "abc"), ("abc", "abc"), ("bearer abc", "bearer abc"), ("Bearer ", "")],
)
def test_extract_token(header: str, token: str) -> None:
    """Only an exact 'Bearer ' prefix should be stripped."""
    assert extract_token(header) == token


@pytest.mark.asyncio
async def test_health_needs_no_auth(client: test_utils.TestClient) -> None:
    """GET /health should answer without credentials."""
    resp = await client.get("/health")

    assert resp.status == 200
    body = await resp.json()
    assert body["status"] == "healthy"
    assert body["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_trigger_without_header_is_401(
    client: test_utils.TestClient, fetch: AsyncMock
) -> None:
    """POST /trigger without Authorization should be rejected before dispatch."""
    resp = await client.post("/trigger")

    assert resp.status == 401
    assert await resp.json() == {"error": "Authorization header required"}
    fetch.assert_not_called()


@pytest.mark.asyncio
async def test_trigger_with_wrong_token_is_403(
    client: test_utils.TestClient, fetch: AsyncMock
) -> None:
    """POST /trigger with an incorrect token should be forbidden."""
    resp = await client.post("/trigger", headers={"Authorization": "Bearer nope"})

    assert resp.status == 403
    assert await resp.json() == {"error": "Invalid token"}
    fetch.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [f"Bearer {SECRET}", SECRET])
async def test_trigger_with_valid_token_dispatches(
    client: test_utils.TestClient, fetch: AsyncMock, header: str
) -> None:
    """Bearer or raw secret should run one cycle and return its outcomes."""
    resp = await client.post("/trigger", headers={"Authorization": header})

    assert resp.status == 200
    body = await resp.json()
    assert body["message"] == "Cron job triggered manually"
    assert len(body["result"]) == 1
    outcome = body["result"][0]
    assert outcome["success"] is True
    assert outcome["status"] == 200
    assert outcome["url"].startswith("https://h/")
    assert "timestamp" in body
    fetch.assert_awaited_once()


@pytest.mark.asyncio
async def test_status_requires_auth(client: test_utils.TestClient) -> None:
    """GET /status should apply the same authentication rules."""
    assert (await client.get("/status")).status == 401
    assert (await client.get("/status", headers={"Authorization": "x"})).status == 403


@pytest.mark.asyncio
async def test_status_reports_configuration_without_dispatching(
    client: test_utils.TestClient, fetch: AsyncMock
) -> None:
    """GET /status should summarize configuration and never call out."""
    resp = await client.get("/status", headers={"Authorization": f"Bearer {SECRET}"})

    assert resp.status == 200
    body = await resp.json()
    assert body["schedule"] == "*/5 * * * *"
    assert body["baseURL"] == "https://h"
    assert body["endpointsCount"] == 2
    assert body["queryParamsCount"] == 1
    assert body["hasOutboundAuth"] is True
    assert body["strategy"] == "random"
    assert body["lastRun"] is None
    fetch.assert_not_called()


@pytest.mark.asyncio
async def test_status_shows_last_run_after_trigger(client: test_utils.TestClient) -> None:
    """The latest outcome batch should be visible through /status."""
    auth = {"Authorization": SECRET}
    await client.post("/trigger", headers=auth)

    body = await (await client.get("/status", headers=auth)).json()

    assert body["lastRun"]["trigger"] == "manual"
    assert body["lastRun"]["calls"] == 1
    assert body["lastRun"]["failures"] == 0


@pytest.mark.asyncio
async def test_status_reports_window_statistics_after_trigger(fetch: AsyncMock) -> None:
    """Calls made by a trigger should show up in the status metrics block."""
    settings = make_settings(strategy=SelectionStrategy.BROADCAST)
    metrics = Metrics(window_size=10)
    app = create_app(settings, Dispatcher(settings, fetch, metrics=metrics), metrics=metrics)
    auth = {"Authorization": SECRET}

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        before = await (await client.get("/status", headers=auth)).json()
        await client.post("/trigger", headers=auth)
        after = await (await client.get("/status", headers=auth)).json()

    assert before["metrics"]["total"] == 0
    assert before["metrics"]["lastStatus"] is None
    assert after["metrics"]["total"] == 2
    assert after["metrics"]["windowSize"] == 2
    assert after["metrics"]["windowMax"] == 10
    assert after["metrics"]["failRatePct"] == 0.0
    assert after["metrics"]["lastStatus"] == 200


@pytest.mark.asyncio
async def test_trigger_with_no_endpoints_returns_empty_result() -> None:
    """An empty endpoint set should produce a 200 with no outcomes."""
    settings = make_settings(endpoints=())
    fetch = AsyncMock(side_effect=fake_fetch)
    app = create_app(settings, Dispatcher(settings, fetch))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.post("/trigger", headers={"Authorization": SECRET})
        body = await resp.json()

    assert resp.status == 200
    assert body["result"] == []
    fetch.assert_not_called()


@pytest.mark.asyncio
async def test_protected_routes_fail_closed_without_inbound_secret() -> None:
    """Without an inbound secret, protected routes answer 503 and /health works."""
    settings = make_settings(inbound_token=None)
    fetch = AsyncMock(side_effect=fake_fetch)
    app = create_app(settings, Dispatcher(settings, fetch))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        trigger = await client.post("/trigger", headers={"Authorization": "anything"})
        status = await client.get("/status")
        health = await client.get("/health")

        assert trigger.status == 503
        assert "error" in await trigger.json()
        assert status.status == 503
        assert health.status == 200

    fetch.assert_not_called()
