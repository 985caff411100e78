"""Dispatch cycle: select endpoints, build requests, fan out and collect outcomes."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from aiohttp import ClientError

from probe_dispatcher.core.request_builder import build_headers, build_url
from probe_dispatcher.core.selection import sample_query_params, select_endpoints
from probe_dispatcher.ports.dispatch import DispatchBatch, DispatchOutcome, Trigger
from probe_dispatcher.ports.http import ProbeRequest, ProbeResponse
from probe_dispatcher.ports.metrics import MetricsPort, ProbeAttemptDto
from probe_dispatcher.ports.settings import SettingsPort

__all__ = ["Dispatcher", "FetchFn"]

logger = logging.getLogger(__name__)

FetchFn = Callable[[ProbeRequest], Awaitable[ProbeResponse]]


class Dispatcher:
    """Runs dispatch cycles against the configured endpoint set.

    Each cycle fans out one GET per selected endpoint concurrently and
    waits for every call to settle. A failing call never aborts its
    siblings: transport errors and non-2xx responses are recorded as
    failed outcomes and never retried.

    Cycles may overlap (a manual trigger during a scheduled tick). They
    share only read-only settings; the latest finished batch replaces
    ``last_batch`` in a single assignment.
    """

    def __init__(
        self,
        settings: SettingsPort,
        fetch_fn: FetchFn,
        *,
        metrics: MetricsPort | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            settings: Validated runtime settings.
            fetch_fn: Transport used to send one GET request.
            metrics: Optional collector updated after every call.
            rng: Random source for selection; defaults to the random module.
        """
        self.settings = settings
        self.fetch_fn = fetch_fn
        self.metrics = metrics
        self.rng = rng
        self._last_batch: DispatchBatch | None = None

    @property
    def last_batch(self) -> DispatchBatch | None:
        """Outcome batch of the most recently finished cycle, if any."""
        return self._last_batch

    def build_requests(self) -> list[tuple[str, ProbeRequest]]:
        """Select endpoints and build one request per endpoint.

        Query parameters are sampled independently for every request.

        Returns:
            List of (endpoint, request) pairs in selection order.
        """
        settings = self.settings
        headers = build_headers(settings.outbound_token, settings.outbound_header)
        requests: list[tuple[str, ProbeRequest]] = []
        for endpoint in select_endpoints(settings.endpoints, settings.strategy, self.rng):
            pairs = sample_query_params(settings.query_params, self.rng)
            url = build_url(settings.base_url, endpoint, pairs)
            requests.append((endpoint, ProbeRequest(url=url, headers=dict(headers))))
        return requests

    async def run_cycle(self, trigger: Trigger = "schedule") -> DispatchBatch:
        """Run one dispatch cycle and return its outcome batch.

        Args:
            trigger: What started the cycle ("schedule" or "manual").

        Returns:
            The finished batch; empty when no endpoints are configured.
        """
        started_at = datetime.now(timezone.utc)
        requests = self.build_requests()

        if not requests:
            logger.info(f"No endpoints configured - skipping {trigger} dispatch cycle")
            batch = DispatchBatch(
                trigger=trigger, started_at=started_at, finished_at=datetime.now(timezone.utc)
            )
            self._last_batch = batch
            return batch

        logger.info(f"Starting {trigger} dispatch cycle - calling {len(requests)} endpoint(s)")
        if self.settings.query_params:
            logger.debug(f"Using {len(self.settings.query_params)} query parameter(s)")

        outcomes = await asyncio.gather(
            *(self._call_one(endpoint, req) for endpoint, req in requests)
        )

        batch = DispatchBatch(
            trigger=trigger,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            outcomes=tuple(outcomes),
        )
        self._last_batch = batch

        logger.info(
            f"Dispatch cycle completed - {len(outcomes)} call(s), {batch.failures} failed"
        )
        if self.metrics:
            logger.info(f"Probe metrics: {self.metrics}")
        return batch

    async def _call_one(self, endpoint: str, req: ProbeRequest) -> DispatchOutcome:
        """Send one request and turn whatever happens into an outcome."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        logger.info(f"Making request to: {req.url}")

        try:
            resp = await self.fetch_fn(req)
        except (ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Error making request to {req.url}: {e!r}")
            outcome = DispatchOutcome(
                url=req.url,
                status=0,
                success=False,
                endpoint=endpoint,
                elapsed_ms=(loop.time() - started) * 1_000.0,
                error=str(e) or type(e).__name__,
            )
        except Exception as e:  # noqa: BLE001
            logger.error(f"Unexpected error requesting {req.url}: {e}", exc_info=True)
            outcome = DispatchOutcome(
                url=req.url,
                status=0,
                success=False,
                endpoint=endpoint,
                elapsed_ms=(loop.time() - started) * 1_000.0,
                error=str(e) or type(e).__name__,
            )
        else:
            logger.info(f"{resp.url} - {resp.status} {resp.reason or ''}".rstrip())
            outcome = DispatchOutcome(
                url=resp.url,
                status=resp.status,
                success=200 <= resp.status < 300,
                endpoint=endpoint,
                elapsed_ms=(loop.time() - started) * 1_000.0,
            )

        if self.metrics:
            self.metrics.update(
                ProbeAttemptDto(
                    started_at_sec=started,
                    finished_at_sec=loop.time(),
                    is_failed=not outcome.success,
                    status_code=outcome.status or None,
                )
            )
        return outcome
