"""HTTP control surface: health, manual trigger and status."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from probe_dispatcher.core.dispatcher import Dispatcher
from probe_dispatcher.ports.dispatch import iso_timestamp
from probe_dispatcher.ports.metrics import MetricsPort
from probe_dispatcher.ports.settings import SettingsPort

__all__ = ["PROTECTED_PATHS", "create_app", "extract_token", "serve_control_surface"]

logger = logging.getLogger(__name__)

PROTECTED_PATHS = frozenset({"/trigger", "/status"})

SETTINGS_KEY = web.AppKey("settings", SettingsPort)
DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)
METRICS_KEY = web.AppKey("metrics", MetricsPort)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def extract_token(auth_header: str) -> str:
    """Strip an optional ``Bearer `` scheme prefix from an Authorization value."""
    return auth_header[len("Bearer ") :] if auth_header.startswith("Bearer ") else auth_header


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Reject unauthenticated calls to protected paths before any handler runs.

    - No inbound secret configured: 503 (protected routes fail closed).
    - Missing Authorization header: 401.
    - Token differs from the inbound secret: 403.
    """
    if request.path not in PROTECTED_PATHS:
        return await handler(request)

    expected = request.app[SETTINGS_KEY].inbound_token
    if not expected:
        return web.json_response(
            {"error": "Control surface disabled: no inbound secret configured"}, status=503
        )

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return web.json_response({"error": "Authorization header required"}, status=401)

    # Plain equality against a pre-shared secret; not timing-safe.
    if extract_token(auth_header) != expected:
        logger.warning(f"Rejected {request.method} {request.path}: invalid token")
        return web.json_response({"error": "Invalid token"}, status=403)

    return await handler(request)


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "healthy", "timestamp": iso_timestamp()})


async def trigger(request: web.Request) -> web.Response:
    """Run one dispatch cycle now and return its outcomes."""
    dispatcher = request.app[DISPATCHER_KEY]
    logger.info("Dispatch cycle triggered manually")
    batch = await dispatcher.run_cycle("manual")
    return web.json_response(
        {
            "message": "Cron job triggered manually",
            "result": [o.to_dict() for o in batch.outcomes],
            "timestamp": iso_timestamp(),
        }
    )


async def status(request: web.Request) -> web.Response:
    """Configuration summary and last-known state; never dispatches."""
    settings = request.app[SETTINGS_KEY]
    last_batch = request.app[DISPATCHER_KEY].last_batch
    metrics = request.app[METRICS_KEY]
    return web.json_response(
        {
            "schedule": settings.schedule,
            "baseURL": settings.base_url,
            "endpointsCount": len(settings.endpoints),
            "queryParamsCount": len(settings.query_params),
            "hasOutboundAuth": settings.has_outbound_auth,
            "strategy": settings.strategy.value,
            "lastRun": last_batch.to_dict() if last_batch else None,
            "metrics": metrics.snapshot() if metrics is not None else None,
            "timestamp": iso_timestamp(),
        }
    )


def create_app(
    settings: SettingsPort,
    dispatcher: Dispatcher,
    metrics: MetricsPort | None = None,
) -> web.Application:
    """Build the control surface application.

    Args:
        settings: Validated runtime settings (read-only).
        dispatcher: Dispatcher shared with the scheduler.
        metrics: Optional metrics collector shown by /status.

    Returns:
        aiohttp application with /health, /trigger and /status routes.
    """
    app = web.Application(middlewares=[auth_middleware])
    app[SETTINGS_KEY] = settings
    app[DISPATCHER_KEY] = dispatcher
    app[METRICS_KEY] = metrics

    app.router.add_get("/health", health)
    app.router.add_post("/trigger", trigger)
    app.router.add_get("/status", status)
    return app


async def serve_control_surface(
    app: web.Application, host: str, port: int, stop: asyncio.Event
) -> None:
    """Serve ``app`` on host:port until ``stop`` is set.

    Args:
        app: Application built by create_app().
        host: Bind address.
        port: TCP port.
        stop: Shutdown event.
    """
    if not app[SETTINGS_KEY].inbound_token:
        logger.warning(
            "SERVER_AUTH_TOKEN not set: /trigger and /status will answer 503"
        )

    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host, port)
        await site.start()
        logger.info(f"Control server running on {host}:{port}")
        await stop.wait()
    finally:
        await runner.cleanup()
        logger.info("Control server stopped.")
