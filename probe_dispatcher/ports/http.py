"""HTTP port definition (DTOs)."""

from dataclasses import dataclass, field

__all__ = ["ProbeRequest", "ProbeResponse"]


@dataclass(slots=True, frozen=True)
class ProbeRequest:
    """HTTP GET request to be sent by the dispatcher.

    Decouples core dispatch logic from HTTP implementation details.

    Attributes:
        url: Fully built target URL (already percent-encoded).
        headers: Request headers, including any outbound credential.
    """

    url: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ProbeResponse:
    """What the transport reports back for a completed request.

    Attributes:
        status: HTTP status code.
        url: Final URL after redirects.
        reason: HTTP reason phrase, if any.
    """

    status: int
    url: str
    reason: str | None = None
