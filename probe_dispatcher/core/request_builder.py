"""Pure URL and header construction for outbound probes."""

from collections.abc import Sequence
from urllib.parse import quote

__all__ = ["USER_AGENT", "build_headers", "build_query_string", "build_url", "encode_path"]

USER_AGENT = "CronJob/1.0.0"

# Characters encodeURIComponent leaves untouched (besides alphanumerics).
_UNRESERVED = "-_.!~*'()"
# Path characters left as-is; existing %XX escapes are preserved.
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"


def _encode(part: str) -> str:
    return quote(part, safe=_UNRESERVED)


def encode_path(endpoint: str) -> str:
    """Percent-encode an endpoint path (spaces, non-ASCII) without touching separators."""
    return quote(endpoint, safe=_PATH_SAFE)


def build_query_string(pairs: Sequence[tuple[str, str]]) -> str:
    """Percent-encode and join (key, value) pairs, without a leading '?'."""
    return "&".join(f"{_encode(key)}={_encode(value)}" for key, value in pairs)


def build_url(base_url: str, endpoint: str = "", pairs: Sequence[tuple[str, str]] = ()) -> str:
    """Compose the full target URL.

    A non-empty endpoint is percent-encoded and joined to the base with
    exactly one slash; an empty endpoint leaves the base URL untouched.
    No '?' is appended when there are no query parameters.

    Examples:
        >>> build_url("https://h", "e", [("x", "5")])
        'https://h/e?x=5'
        >>> build_url("https://h")
        'https://h'
    """
    url = base_url
    if endpoint:
        url = f"{base_url.rstrip('/')}/{encode_path(endpoint.lstrip('/'))}"

    query = build_query_string(pairs)
    if query:
        url = f"{url}?{query}"
    return url


def build_headers(
    outbound_token: str | None = None, outbound_header: str = "Authorization"
) -> dict[str, str]:
    """Build the fixed header set for a probe.

    The outbound credential is sent as ``Bearer <token>`` when it travels in
    the Authorization header, and verbatim in any other header.
    """
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if outbound_token:
        if outbound_header.lower() == "authorization" and not outbound_token.startswith("Bearer "):
            headers[outbound_header] = f"Bearer {outbound_token}"
        else:
            headers[outbound_header] = outbound_token
    return headers
