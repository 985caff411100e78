"""Tests for the aiohttp transport adapter."""

from unittest.mock import MagicMock, Mock

import aiohttp
import pytest
from aiohttp import test_utils, web
from yarl import URL

from probe_dispatcher.adapters.driven.http.client import HttpClient
from probe_dispatcher.core.dispatcher import Dispatcher
from probe_dispatcher.ports.http import ProbeRequest, ProbeResponse
from probe_dispatcher.ports.settings import SelectionStrategy, SettingsPort

__all__ = []


def make_session(status: int = 200, url: str = "https://h/e", reason: str = "OK") -> Mock:
    """Session mock whose get() works as an async context manager."""
    mock_response = Mock()
    mock_response.status = status
    mock_response.url = URL(url)
    mock_response.reason = reason

    response_cm = MagicMock()
    response_cm.__aenter__.return_value = mock_response

    session = Mock()
    session.get = Mock(return_value=response_cm)
    return session


@pytest.mark.asyncio
async def test_http_client_context_manager() -> None:
    """HTTP client should open and close its session."""
    client = HttpClient(timeout_sec=5)
    assert client.session is None

    async with client as c:
        assert c is client
        assert c.session is not None
        session = c.session

    assert session.closed


@pytest.mark.asyncio
async def test_fetch_returns_status_and_final_url() -> None:
    """fetch() should report status, final URL and reason."""
    client = HttpClient()
    client.session = make_session(status=201, url="https://h/final")

    resp = await client.fetch(ProbeRequest(url="https://h/e?x=5", headers={"A": "b"}))

    assert resp == ProbeResponse(status=201, url="https://h/final", reason="OK")


@pytest.mark.asyncio
async def test_fetch_sends_prebuilt_url_and_headers() -> None:
    """fetch() should GET the URL as built, without re-encoding it."""
    client = HttpClient()
    client.session = make_session()

    await client.fetch(ProbeRequest(url="https://h/e?q=a%20b", headers={"User-Agent": "x"}))

    args, kwargs = client.session.get.call_args
    assert str(args[0]) == "https://h/e?q=a%20b"
    assert kwargs["headers"] == {"User-Agent": "x"}


@pytest.mark.asyncio
async def test_fetch_does_not_treat_error_status_as_exception() -> None:
    """Non-2xx responses should be returned, not raised."""
    client = HttpClient()
    client.session = make_session(status=503, reason="Service Unavailable")

    resp = await client.fetch(ProbeRequest(url="https://h/e"))

    assert resp.status == 503


@pytest.mark.asyncio
async def test_fetch_propagates_transport_errors() -> None:
    """Transport failures should propagate to the dispatcher."""
    client = HttpClient()
    client.session = Mock()
    client.session.get = Mock(side_effect=aiohttp.ClientConnectionError("refused"))

    with pytest.raises(aiohttp.ClientConnectionError):
        await client.fetch(ProbeRequest(url="https://h/e"))


@pytest.mark.asyncio
async def test_fetch_raises_if_session_not_initialized() -> None:
    """fetch() should raise if used outside the context manager."""
    client = HttpClient()

    with pytest.raises(RuntimeError, match="Session not initialized"):
        await client.fetch(ProbeRequest(url="https://h/e"))


@pytest.mark.asyncio
async def test_endpoints_with_spaces_and_unicode_reach_the_server() -> None:
    """Endpoints needing percent-encoding should arrive as well-formed requests."""
    seen_paths: list[str] = []

    async def echo(request: web.Request) -> web.Response:
        seen_paths.append(request.path)
        return web.json_response({"path": request.path})

    app = web.Application()
    app.router.add_get("/{tail:.*}", echo)

    async with test_utils.TestServer(app) as server:
        settings = SettingsPort(
            schedule="* * * * *",
            base_url=str(server.make_url("/")).rstrip("/"),
            endpoints=("hello world", "café"),
            strategy=SelectionStrategy.BROADCAST,
        )
        async with HttpClient(timeout_sec=5) as http:
            batch = await Dispatcher(settings, http.fetch).run_cycle()

    assert [o.status for o in batch.outcomes] == [200, 200]
    assert all(o.success for o in batch.outcomes)
    assert sorted(seen_paths) == sorted(["/hello world", "/café"])
