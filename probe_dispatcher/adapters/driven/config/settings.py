"""Configuration loading from environment variables."""

import json
import logging
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    field_validator,
    model_validator,
)

from probe_dispatcher.core.request_builder import build_url
from probe_dispatcher.ports.settings import QueryParam, SelectionStrategy, SettingsPort

__all__ = ["QueryParamConfig", "Settings", "load_settings"]

load_dotenv()

logger = logging.getLogger(__name__)
_http_url_adapter = TypeAdapter(HttpUrl)

LEGACY_SECRET_HEADER = "X-Cron-Secret"
_TRUTHY = {"1", "true", "yes", "on"}


def _validate_http_url(v: str, what: str) -> str:
    try:
        url = _http_url_adapter.validate_python(v)
    except Exception as e:
        raise ValueError(f"Invalid {what}: {e}") from e
    if url.scheme not in ("http", "https"):
        raise ValueError(f"Invalid {what}: only http:// and https:// URLs allowed")
    return v


class QueryParamConfig(BaseModel):
    """One entry of the QUERY_PARAMS array.

    Either ``{"key": ..., "value": ...}`` (literal) or
    ``{"key": ..., "range": N}`` (randomized in [1, N]).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str = Field(..., min_length=1)
    value: str | int | float | None = None
    range: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_exactly_one_mode(self) -> "QueryParamConfig":
        if (self.value is None) == (self.range is None):
            raise ValueError(
                f"query parameter '{self.key}' needs exactly one of 'value' or 'range'"
            )
        return self

    def to_port(self) -> QueryParam:
        if self.range is not None:
            return QueryParam(key=self.key, range=self.range)
        return QueryParam(key=self.key, value=str(self.value))


class Settings(BaseModel):
    """Runtime configuration for the dispatcher service.

    Attributes:
        cron_timer: Cron expression driving dispatch cycles.
        base_url: Base URL every endpoint is joined to.
        endpoints: Endpoint paths; empty means every cycle is a no-op.
        query_params: Literal or randomized query parameters (not mixed).
        strategy: Single-random or broadcast-all endpoint selection.
        server_auth_token: Secret required by protected control endpoints.
        client_auth_token: Credential attached to outbound probes.
        client_auth_header: Header carrying the outbound credential.
        control_server_enabled: Whether to serve the control surface.
        host: Control surface bind address.
        port: Control surface port.
        request_timeout_sec: Total transport timeout per probe.
        cron_timezone: IANA zone for the schedule; local time when unset.
    """

    model_config = ConfigDict(frozen=True)

    cron_timer: str = Field(..., min_length=1, description="Cron expression.")
    base_url: str = Field(..., description="Base URL for all probes.")
    endpoints: list[str] = Field(default_factory=list)
    query_params: list[QueryParamConfig] = Field(default_factory=list)
    strategy: SelectionStrategy = SelectionStrategy.BROADCAST
    server_auth_token: str | None = None
    client_auth_token: str | None = None
    client_auth_header: str = Field(default="Authorization", min_length=1)
    control_server_enabled: bool = False
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    request_timeout_sec: float = Field(default=30.0, gt=0)
    cron_timezone: str | None = None

    @field_validator("cron_timer")
    @classmethod
    def validate_cron_timer(cls, v: str) -> str:
        """Reject expressions croniter cannot parse (seconds field first when present)."""
        if not croniter.is_valid(v, second_at_beginning=True):
            raise ValueError(f"Invalid cron expression: {v!r}")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        return _validate_http_url(v, "base URL")

    @field_validator("cron_timezone")
    @classmethod
    def validate_cron_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @model_validator(mode="after")
    def validate_endpoints(self) -> "Settings":
        """Every endpoint joined to the base URL must form a valid URL."""
        for endpoint in self.endpoints:
            _validate_http_url(build_url(self.base_url, endpoint), f"endpoint {endpoint!r}")
        return self

    @field_validator("query_params")
    @classmethod
    def validate_single_mode(cls, v: list[QueryParamConfig]) -> list[QueryParamConfig]:
        """Literal and randomized parameters are mutually exclusive."""
        modes = {p.range is not None for p in v}
        if len(modes) > 1:
            raise ValueError("QUERY_PARAMS mixes literal 'value' and randomized 'range' entries")
        return v

    @property
    def timezone(self) -> ZoneInfo | None:
        return ZoneInfo(self.cron_timezone) if self.cron_timezone else None

    def to_port(self) -> SettingsPort:
        """Project into the immutable DTO the core depends on."""
        return SettingsPort(
            schedule=self.cron_timer,
            base_url=self.base_url,
            endpoints=tuple(self.endpoints),
            query_params=tuple(p.to_port() for p in self.query_params),
            strategy=self.strategy,
            outbound_token=self.client_auth_token,
            outbound_header=self.client_auth_header,
            inbound_token=self.server_auth_token,
        )


def _parse_json_env(name: str) -> Any:
    raw = os.getenv(name)
    if not raw:
        return []
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{name} contains invalid JSON: {e}") from e


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def load_settings() -> Settings:
    """Load and validate settings from the environment.

    Required environment variables:
    - CRON_TIMER: Cron expression.
    - BASE_URL: http(s) base URL.

    Optional:
    - ENDPOINTS, QUERY_PARAMS: JSON arrays.
    - SELECTION_STRATEGY: "random" or "broadcast".
    - SERVER_AUTH_TOKEN, CLIENT_AUTH_TOKEN, CLIENT_AUTH_HEADER, CRON_SECRET.
    - CONTROL_SERVER_ENABLED, HOST, PORT.
    - REQUEST_TIMEOUT_SECONDS, CRON_TIMEZONE.

    Returns:
        Validated Settings object.

    Raises:
        RuntimeError: If required env vars are missing.
        ValueError: If configuration is invalid (including pydantic
            ValidationError).
    """
    cron_timer = _require_env("CRON_TIMER")
    base_url = _require_env("BASE_URL")

    endpoints = _parse_json_env("ENDPOINTS")
    query_params = _parse_json_env("QUERY_PARAMS")

    client_auth_token = os.getenv("CLIENT_AUTH_TOKEN") or None
    client_auth_header = os.getenv("CLIENT_AUTH_HEADER") or "Authorization"
    legacy_secret = os.getenv("CRON_SECRET") or None
    if client_auth_token is None and legacy_secret is not None:
        client_auth_token = legacy_secret
        client_auth_header = LEGACY_SECRET_HEADER

    overrides: dict[str, Any] = {}
    for env_name, field_name in (
        ("SELECTION_STRATEGY", "strategy"),
        ("HOST", "host"),
        ("PORT", "port"),
        ("REQUEST_TIMEOUT_SECONDS", "request_timeout_sec"),
        ("CRON_TIMEZONE", "cron_timezone"),
    ):
        raw = os.getenv(env_name)
        if raw:
            overrides[field_name] = raw.strip()

    settings = Settings(
        cron_timer=cron_timer,
        base_url=base_url,
        endpoints=endpoints,
        query_params=query_params,
        server_auth_token=os.getenv("SERVER_AUTH_TOKEN") or None,
        client_auth_token=client_auth_token,
        client_auth_header=client_auth_header,
        control_server_enabled=os.getenv("CONTROL_SERVER_ENABLED", "").strip().lower() in _TRUTHY,
        **overrides,
    )

    logger.info(
        f"Dispatcher configured: schedule={settings.cron_timer!r}, "
        f"base_url={settings.base_url}, "
        f"endpoints={len(settings.endpoints)}, "
        f"query_params={len(settings.query_params)}, "
        f"strategy={settings.strategy.value}, "
        f"outbound_auth={'yes' if settings.client_auth_token else 'no'}, "
        f"control_server={'port ' + str(settings.port) if settings.control_server_enabled else '<disabled>'}"
    )

    return settings
