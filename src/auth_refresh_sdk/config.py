"""Configuration for Auth Refresh SDK.

Uses Pydantic v2 for validation with sensible defaults.
"""

from __future__ import annotations

from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
)


class TelemetryConfig(BaseModel):
    """OpenTelemetry and structlog configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "auth-refresh-sdk"
    trace_requests: bool = True
    trace_token_operations: bool = True
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        supported = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in supported:
            msg = f"Unsupported log level: {v}. Supported: {supported}"
            raise ValueError(msg)
        return v.upper()

    @property
    def traces_requests(self) -> bool:
        """Whether each client request gets an ``http_request`` span."""
        return self.enabled and self.trace_requests

    @property
    def traces_token_operations(self) -> bool:
        """Whether login, logout and refresh cycles get spans."""
        return self.enabled and self.trace_token_operations


class AuthConfig(BaseModel):
    """Login and refresh endpoints plus the credential-expiry signal."""

    model_config = ConfigDict(frozen=True)

    login_url: str | None = None
    refresh_url: str | None = None
    access_expiration_code: Annotated[int, Field(ge=100, le=599)] = 401
    refresh_timeout: Annotated[float, Field(gt=0, le=300)] = 30.0

    @field_validator("login_url", "refresh_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Reject blank endpoint strings."""
        if v is not None and not v.strip():
            msg = "Endpoint URL must not be blank"
            raise ValueError(msg)
        return v


class ClientConfig(BaseModel):
    """Main configuration for the SDK clients."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    base_url: HttpUrl | None = None

    # HTTP settings
    timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 10.0
    headers: dict[str, str] = Field(default_factory=dict)

    # Sub-configurations
    auth: AuthConfig = Field(default_factory=AuthConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @property
    def base_url_str(self) -> str:
        """Get base URL as string without trailing slash, empty if unset."""
        if self.base_url is None:
            return ""
        return str(self.base_url).rstrip("/")

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump()
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "AUTH_REFRESH_") -> Self:
        """Create config from environment variables."""
        import os

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        auth = AuthConfig(
            login_url=get_env("LOGIN_URL"),
            refresh_url=get_env("REFRESH_URL"),
            access_expiration_code=int(get_env("ACCESS_EXPIRATION_CODE", "401")),
            refresh_timeout=float(get_env("REFRESH_TIMEOUT", "30.0")),
        )
        telemetry = TelemetryConfig(
            enabled=get_env("TELEMETRY_ENABLED", "true").lower() in {"1", "true", "yes"},
            trace_requests=get_env("TRACE_REQUESTS", "true").lower() in {"1", "true", "yes"},
            trace_token_operations=(
                get_env("TRACE_TOKEN_OPERATIONS", "true").lower() in {"1", "true", "yes"}
            ),
            log_level=get_env("LOG_LEVEL", "INFO"),
        )

        return cls(
            base_url=get_env("BASE_URL"),
            timeout=float(get_env("TIMEOUT", "30.0")),
            auth=auth,
            telemetry=telemetry,
        )
