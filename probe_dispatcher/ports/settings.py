"""Settings port definition (DTO)."""

from dataclasses import dataclass, field
from enum import Enum

__all__ = ["QueryParam", "SelectionStrategy", "SettingsPort"]


class SelectionStrategy(str, Enum):
    """How endpoints are picked for one dispatch cycle."""

    RANDOM = "random"
    BROADCAST = "broadcast"


@dataclass(slots=True, frozen=True)
class QueryParam:
    """One configured query parameter.

    Exactly one of ``value`` (literal mode) or ``range`` (randomized mode)
    is set.

    Attributes:
        key: Query parameter name.
        value: Fixed value sent on every call.
        range: Upper bound N; a value in [1, N] is sampled per call.
    """

    key: str
    value: str | None = None
    range: int | None = None

    @property
    def is_randomized(self) -> bool:
        return self.range is not None


@dataclass(slots=True, frozen=True)
class SettingsPort:
    """Runtime settings for the dispatch core.

    Decouples core from concrete configuration sources, enabling
    easy testing and implementation swapping.

    Attributes:
        schedule: Cron expression driving the scheduler.
        base_url: Base URL every endpoint is joined to.
        endpoints: Endpoint paths to choose from.
        query_params: Query parameters attached to each call.
        strategy: Single-random or broadcast-all selection.
        outbound_token: Optional credential sent with each probe.
        outbound_header: Header carrying the outbound credential.
        inbound_token: Optional secret required by the control surface.
    """

    schedule: str
    base_url: str
    endpoints: tuple[str, ...] = ()
    query_params: tuple[QueryParam, ...] = field(default_factory=tuple)
    strategy: SelectionStrategy = SelectionStrategy.BROADCAST
    outbound_token: str | None = None
    outbound_header: str = "Authorization"
    inbound_token: str | None = None

    @property
    def has_outbound_auth(self) -> bool:
        return bool(self.outbound_token)
