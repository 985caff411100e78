"""Application entrypoint."""

import asyncio
import logging

from probe_dispatcher.adapters.driven.config.settings import load_settings
from probe_dispatcher.adapters.driven.http.client import HttpClient
from probe_dispatcher.adapters.driven.logging.logging_config import configure_logs
from probe_dispatcher.adapters.driven.metrics.http_metrics import Metrics
from probe_dispatcher.adapters.driving.control_server import create_app, serve_control_surface
from probe_dispatcher.adapters.driving.signals import make_stop_on_sigterm
from probe_dispatcher.core.dispatcher import Dispatcher
from probe_dispatcher.core.scheduler import start_cron_loop

__all__ = ["main", "run"]

logger = logging.getLogger(__name__)


async def main() -> int:
    """Start the probe dispatcher service.

    Startup sequence:
    1. Configure logging.
    2. Load and validate configuration; abort with status 1 if invalid.
    3. Start the cron loop and, if enabled, the control server.
    4. Gracefully shutdown on SIGTERM/SIGINT.

    Returns:
        Process exit status.
    """
    configure_logs()
    logger.info("Starting probe dispatcher service...")

    try:
        config = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(
            "Configuration error: %s\n"
            "Hint: check CRON_TIMER, BASE_URL, and that ENDPOINTS and "
            "QUERY_PARAMS are valid JSON arrays.",
            exc,
        )
        return 1

    # Core depends on the immutable port, never on the pydantic model
    settings_port = config.to_port()

    metrics = Metrics()
    http_client = HttpClient(timeout_sec=config.request_timeout_sec)

    async with http_client as http:
        dispatcher = Dispatcher(settings=settings_port, fetch_fn=http.fetch, metrics=metrics)
        stop = make_stop_on_sigterm()

        jobs = [
            start_cron_loop(
                schedule=settings_port.schedule,
                stop=stop,
                tick_fn=lambda: dispatcher.run_cycle("schedule"),
                tz=config.timezone,
            )
        ]
        if config.control_server_enabled:
            app = create_app(settings_port, dispatcher, metrics)
            jobs.append(serve_control_surface(app, config.host, config.port, stop))

        try:
            await asyncio.gather(*jobs)
        except Exception as e:
            logger.error(f"Unhandled exception in dispatcher service: {e}", exc_info=True)
            stop.set()
            return 1

    logger.info("Probe dispatcher stopped.")
    return 0


def run() -> None:
    """Console script entrypoint."""
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user (Ctrl+C).")


if __name__ == "__main__":
    run()
