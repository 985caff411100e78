"""Cron-driven loop that fires dispatch cycles on schedule."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo

from croniter import croniter

__all__ = ["get_now_time", "next_tick_after", "start_cron_loop"]

logger = logging.getLogger(__name__)


def get_now_time(tz: tzinfo | None = None) -> datetime:
    """Current wall-clock time, timezone-aware (local zone when tz is None)."""
    return datetime.now(tz).astimezone(tz)


def next_tick_after(schedule: str, moment: datetime) -> datetime:
    """Return the first tick of ``schedule`` strictly after ``moment``.

    Args:
        schedule: Cron expression; an optional seconds field comes first.
        moment: Timezone-aware reference time.

    Returns:
        Timezone-aware datetime of the next tick.
    """
    return croniter(schedule, moment, second_at_beginning=True).get_next(datetime)


async def start_cron_loop(
    schedule: str,
    stop: asyncio.Event,
    tick_fn: Callable[[], Awaitable[object]],
    tz: tzinfo | None = None,
) -> None:
    """Run the scheduling loop until ``stop`` is set.

    At each matching tick:
    1. Schedule ``tick_fn`` as a background task (fire-and-forget).
    2. Wait for the next tick, waking early if ``stop`` is set.
    3. On shutdown, cancel in-flight ticks and wait for them.

    Args:
        schedule: Cron expression, already validated.
        stop: Event that ends the loop when set.
        tick_fn: Async callback run at every tick.
        tz: Timezone the schedule is evaluated in; local time when None.

    Notes:
        - The loop never awaits ticks: a slow cycle never delays the next
          one, so cycles may overlap.
        - Exceptions raised by ``tick_fn`` are logged and never stop the loop.
    """
    pending: set[asyncio.Task[None]] = set()
    loop = asyncio.get_running_loop()

    async def _run_once() -> None:
        """Run one tick and handle/log errors."""
        try:
            await tick_fn()
        except asyncio.CancelledError:
            logger.info("Shutdown requested (tick cancelled).")
        except Exception as e:  # noqa: BLE001
            logger.error(f"Unexpected error in scheduled tick: {e}", exc_info=True)
        finally:
            task = asyncio.current_task()
            if task is not None:
                pending.discard(task)

    logger.info(f"Cron scheduled with timer: {schedule}")
    next_tick = next_tick_after(schedule, get_now_time(tz))

    while not stop.is_set():
        delay = max(0.0, (next_tick - get_now_time(tz)).total_seconds())
        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        if stop.is_set():
            break

        # Fire and forget
        task: asyncio.Task[None] = loop.create_task(_run_once())
        pending.add(task)

        # Never fire the same tick twice, even if the timer woke a bit early.
        next_tick = next_tick_after(schedule, max(next_tick, get_now_time(tz)))

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    logger.info("Cron loop stopped.")
