"""Metrics port definition (interface and DTO)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

__all__ = ["ProbeAttemptDto", "MetricsPort"]


@dataclass(slots=True, frozen=True)
class ProbeAttemptDto:
    """Immutable snapshot of a single probe attempt.

    Attributes:
        started_at_sec: Monotonic seconds when the request left the process.
        finished_at_sec: Monotonic seconds when the call settled.
        is_failed: True if considered failed (network error, non-2xx).
        status_code: HTTP status code when response arrived; None otherwise.
    """

    started_at_sec: float
    finished_at_sec: float
    is_failed: bool = False
    status_code: int | None = None


class MetricsPort(Protocol):
    """Interface for recording probe attempt metrics.

    Implementations must be async-safe and non-blocking.
    Core calls update() after each attempt. Logs render __str__() and the
    control surface reports snapshot().
    """

    def update(self, attempt: ProbeAttemptDto, /) -> None:
        """Record a finished probe attempt.

        Args:
            attempt: The attempt to record.
        """
        ...

    def snapshot(self) -> dict[str, Any]:
        """Return the current statistics as a JSON-ready mapping."""
        ...

    def __str__(self) -> str:
        """Return concise textual summary for humans.

        Returns:
            Formatted metrics string.
        """
        ...
