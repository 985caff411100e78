"""In-memory sliding-window metrics for outbound dispatch calls."""

from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass
from typing import Any

from probe_dispatcher.ports.metrics import MetricsPort, ProbeAttemptDto

__all__ = ["Metrics"]


@dataclass(slots=True, frozen=True)
class _Sample:
    """Settled call as kept in the window."""

    latency_ms: float
    failed: bool
    status_code: int


class Metrics(MetricsPort):
    """Rolling view over the most recent outbound calls.

    The window keeps at most ``window_size`` samples, while the total
    counts every call recorded since start-up. A call counts as failed
    when no response arrived or the status was outside 2xx.

    Not thread-safe; create one instance per event loop.
    """

    def __init__(self, *, window_size: int = 100) -> None:
        """Create an empty collector.

        Args:
            window_size: How many recent calls feed the averages.
        """
        self._window: deque[_Sample] = deque(maxlen=window_size)
        self._total_seen: int = 0

    def update(self, attempt: ProbeAttemptDto) -> None:
        """Add one settled call to the window.

        Args:
            attempt: Start/finish times and result of the call.
        """
        self._window.append(
            _Sample(
                latency_ms=(attempt.finished_at_sec - attempt.started_at_sec) * 1_000.0,
                failed=attempt.is_failed,
                status_code=attempt.status_code or 0,
            )
        )
        self._total_seen += 1

    def snapshot(self) -> dict[str, Any]:
        """Window statistics as a JSON-ready mapping.

        Returns:
            Dict with ``windowSize``, ``windowMax`` and ``total``. Once a
            call was recorded it also holds ``avgLatencyMs``,
            ``failRatePct`` and ``lastStatus``; before that those are None.
        """
        summary: dict[str, Any] = {
            "windowSize": len(self._window),
            "windowMax": self._window.maxlen,
            "total": self._total_seen,
            "avgLatencyMs": None,
            "failRatePct": None,
            "lastStatus": None,
        }
        if self._window:
            failures = sum(1 for s in self._window if s.failed)
            summary["avgLatencyMs"] = round(statistics.fmean(s.latency_ms for s in self._window), 1)
            summary["failRatePct"] = round(failures / len(self._window) * 100, 1)
            summary["lastStatus"] = self._window[-1].status_code
        return summary

    def __str__(self) -> str:
        """One-line summary for the cycle log.

        Returns:
            Formatted metrics string, or a placeholder before any call.
        """
        stats = self.snapshot()
        if stats["lastStatus"] is None:
            return "Metrics: waiting for data …"

        return (
            f"latency={stats['avgLatencyMs']:6.1f} ms | "
            f"status={stats['lastStatus']:3d} | "
            f"fail={stats['failRatePct']:5.1f}% | "
            f"win={stats['windowSize']}/{stats['windowMax']} | "
            f"total={stats['total']}"
        )
