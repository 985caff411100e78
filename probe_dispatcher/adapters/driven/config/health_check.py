"""Configuration healthcheck for container orchestration."""

import logging

from probe_dispatcher.adapters.driven.config.settings import load_settings
from probe_dispatcher.adapters.driven.logging.logging_config import configure_logs

__all__ = ["main"]

logger = logging.getLogger(__name__)


def main() -> int:
    """Check that the dispatcher would start with the current environment.

    Validates:
    - CRON_TIMER and BASE_URL are set and well-formed.
    - ENDPOINTS and QUERY_PARAMS are valid JSON of the expected shape.

    Returns:
        0 if the configuration loads, 1 otherwise.
    """
    configure_logs()

    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(f"Dispatcher healthcheck FAILED: {exc}")
        return 1

    if settings.control_server_enabled and not settings.server_auth_token:
        logger.warning("Control server enabled without SERVER_AUTH_TOKEN; protected routes disabled")

    logger.info("Dispatcher healthcheck OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
