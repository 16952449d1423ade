"""Error classes for Auth Refresh SDK.

Implements a structured error hierarchy with error codes, correlation IDs
and the originating HTTP response where one exists.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class ErrorCode(StrEnum):
    """Standardized error codes for Auth Refresh SDK."""

    # Authentication errors (1xxx)
    TOKEN_EXPIRED = "AUTH_1001"
    RETRY_EXHAUSTED = "AUTH_1002"
    REFRESH_UNAVAILABLE = "AUTH_1003"
    REFRESH_FAILED = "AUTH_1004"
    REFRESH_TIMEOUT = "AUTH_1005"
    LOGIN_FAILED = "AUTH_1006"

    # Validation errors (2xxx)
    INVALID_CONFIG = "VAL_2001"

    # Network errors (3xxx)
    NETWORK_ERROR = "NET_3001"

    # HTTP status errors (4xxx)
    HTTP_STATUS = "HTTP_4001"


class AuthRefreshError(Exception):
    """Base error for Auth Refresh SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.status_code = status_code
        self.correlation_id = correlation_id
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class TransportError(AuthRefreshError):
    """Network-level failure. Never triggers a token refresh."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class ResponseStatusError(AuthRefreshError):
    """Server answered with a non-success status."""

    def __init__(
        self,
        message: str,
        response: httpx.Response,
        code: ErrorCode | str = ErrorCode.HTTP_STATUS,
        *,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            status_code=response.status_code,
            correlation_id=correlation_id,
            details=details,
        )
        self.response = response

    @property
    def request(self) -> httpx.Request:
        """Request that produced the failed response."""
        return self.response.request


class ExpiryError(ResponseStatusError):
    """Response matched the configured credential-expiry status code."""

    def __init__(
        self,
        response: httpx.Response,
        message: str = "Access token has expired",
        code: ErrorCode | str = ErrorCode.TOKEN_EXPIRED,
        *,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            response,
            code,
            correlation_id=correlation_id,
        )


class RetryExhaustedError(ExpiryError):
    """The retried request was rejected as expired as well.

    Built from the retry's own response; the first failure is not wrapped.
    """

    def __init__(
        self,
        response: httpx.Response,
        message: str = "Request still unauthorized after token refresh",
        *,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            response,
            message,
            ErrorCode.RETRY_EXHAUSTED,
            correlation_id=correlation_id,
        )


class RefreshUnavailableError(AuthRefreshError):
    """No refresh operation or refresh credential is configured."""

    def __init__(
        self,
        message: str = "Refresh not available",
        *,
        response: httpx.Response | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REFRESH_UNAVAILABLE,
            status_code=response.status_code if response is not None else None,
            correlation_id=correlation_id,
        )
        self.response = response


class RefreshFailedError(AuthRefreshError):
    """The refresh operation itself failed. Stored credentials were cleared."""

    def __init__(
        self,
        message: str = "Failed to refresh token",
        *,
        correlation_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REFRESH_FAILED,
            correlation_id=correlation_id,
            details={"cause": repr(cause)} if cause else None,
        )
        self.__cause__ = cause


class RefreshTimeoutError(AuthRefreshError):
    """Refresh operation did not settle within the configured timeout."""

    def __init__(
        self,
        message: str = "Token refresh timed out",
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.REFRESH_TIMEOUT,
            details={"timeout_seconds": timeout_seconds} if timeout_seconds else None,
        )


class LoginError(AuthRefreshError):
    """Login endpoint did not hand out usable credentials."""

    def __init__(
        self,
        message: str = "Login failed",
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.LOGIN_FAILED,
            status_code=status_code,
            correlation_id=correlation_id,
        )


class InvalidConfigError(AuthRefreshError):
    """Invalid SDK configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CONFIG,
            details={"field": field} if field else None,
        )
