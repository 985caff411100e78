"""Dispatch result DTOs shared by the core and the control surface."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

__all__ = ["DispatchBatch", "DispatchOutcome", "Trigger", "iso_timestamp"]

Trigger = Literal["schedule", "manual"]


def iso_timestamp(moment: datetime | None = None) -> str:
    """Render a UTC timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    """Result of one outbound probe.

    Attributes:
        url: Target URL actually used (final URL when the call completed).
        status: HTTP status code; 0 when no response arrived.
        success: True for 2xx responses.
        endpoint: Endpoint path the URL was built from.
        elapsed_ms: Wall time spent on the call.
        error: Transport error description, if any.
    """

    url: str
    status: int
    success: bool
    endpoint: str = ""
    elapsed_ms: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "url": self.url,
            "status": self.status,
            "endpoint": self.endpoint,
            "elapsedMs": round(self.elapsed_ms, 1),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(slots=True, frozen=True)
class DispatchBatch:
    """Outcome batch of one dispatch cycle.

    Attributes:
        trigger: What started the cycle.
        started_at: UTC time the cycle began.
        finished_at: UTC time every call had settled.
        outcomes: Per-call outcomes in selection order.
    """

    trigger: Trigger
    started_at: datetime
    finished_at: datetime
    outcomes: tuple[DispatchOutcome, ...] = ()

    @property
    def failures(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "startedAt": iso_timestamp(self.started_at),
            "finishedAt": iso_timestamp(self.finished_at),
            "calls": len(self.outcomes),
            "failures": self.failures,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
