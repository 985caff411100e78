"""aiohttp transport adapter for outbound probes."""

import logging
from types import TracebackType

import aiohttp
from aiohttp import ClientTimeout
from yarl import URL

from probe_dispatcher.ports.http import ProbeRequest, ProbeResponse

__all__ = ["HttpClient"]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0


class HttpClient:
    """Single-attempt HTTP GET transport.

    Features:
    - One shared ClientSession per process.
    - Context manager for proper resource cleanup.
    - Transport failures propagate as aiohttp.ClientError or
      asyncio.TimeoutError; no retry is attempted.
    """

    def __init__(self, timeout_sec: float = DEFAULT_TIMEOUT_SEC) -> None:
        """Initialize HTTP client.

        Args:
            timeout_sec: Total timeout applied to each request.
        """
        self.timeout = ClientTimeout(total=timeout_sec)
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "HttpClient":
        """Enter async context manager (start session).

        Returns:
            Self for use in async with statement.
        """
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Exit async context manager (close session)."""
        if self.session:
            await self.session.close()

    async def fetch(self, req: ProbeRequest) -> ProbeResponse:
        """Send one GET request and report status and final URL.

        The URL is sent as built: it is already percent-encoded, so it is
        not re-quoted.

        Args:
            req: Request with target URL and headers.

        Returns:
            Status code, final URL and reason phrase.

        Raises:
            RuntimeError: If session not initialized.
            aiohttp.ClientError: On connection/protocol failures.
            asyncio.TimeoutError: When the request exceeds the timeout.
        """
        if self.session is None:
            raise RuntimeError("Session not initialized; use 'async with' context manager")

        async with self.session.get(
            URL(req.url, encoded=True), headers=req.headers, allow_redirects=True
        ) as resp:
            return ProbeResponse(status=resp.status, url=str(resp.url), reason=resp.reason)
