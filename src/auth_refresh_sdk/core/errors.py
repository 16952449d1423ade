"""Centralized error factory for Auth Refresh SDK.

Provides consistent error creation and transformation across all SDK components.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import (
    AuthRefreshError,
    ExpiryError,
    InvalidConfigError,
    RefreshUnavailableError,
    ResponseStatusError,
    RetryExhaustedError,
    TransportError,
)

CORRELATION_HEADERS = ("X-Correlation-ID", "X-Request-ID")


class ErrorFactory:
    """Centralized error creation with consistent structure.

    All errors created through this factory include:
    - Standardized error codes
    - A correlation ID, taken from the response when the server sent one
    - Consistent detail structure for logging
    """

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a unique correlation ID."""
        return str(uuid.uuid4())

    @staticmethod
    def correlation_id_for(response: httpx.Response) -> str:
        """Correlation ID echoed by the server, or a fresh one."""
        for header in CORRELATION_HEADERS:
            value = response.headers.get(header)
            if value:
                return value
        return ErrorFactory.generate_correlation_id()

    @staticmethod
    def _response_details(response: httpx.Response) -> dict[str, Any]:
        details: dict[str, Any] = {}
        try:
            details["method"] = response.request.method
            details["url"] = str(response.request.url)
        except RuntimeError:
            # Response built without a request.
            pass
        try:
            body = response.json()
        except (ValueError, httpx.ResponseNotRead):
            return details
        if isinstance(body, dict):
            for key in ("error", "error_description", "message"):
                if body.get(key) is not None:
                    details[key] = body[key]
        return details

    @staticmethod
    def from_http_response(
        response: httpx.Response,
        *,
        correlation_id: str | None = None,
    ) -> ResponseStatusError:
        """Create SDK error for a failed, non-expiry response.

        Args:
            response: HTTP response object.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            ResponseStatusError carrying the response.
        """
        correlation_id = correlation_id or ErrorFactory.correlation_id_for(response)
        details = ErrorFactory._response_details(response)
        message = details.get("error_description") or details.get("message") or (
            f"Request failed with status {response.status_code}"
        )
        return ResponseStatusError(
            str(message),
            response,
            correlation_id=correlation_id,
            details=details,
        )

    @staticmethod
    def expired(
        response: httpx.Response,
        *,
        retried: bool = False,
    ) -> ExpiryError:
        """Create the error for a response matching the expiry status code.

        Args:
            response: The expired response.
            retried: Whether ``response`` answers the replayed request.

        Returns:
            RetryExhaustedError for a replay, ExpiryError otherwise.
        """
        correlation_id = ErrorFactory.correlation_id_for(response)
        error: ExpiryError
        if retried:
            error = RetryExhaustedError(response, correlation_id=correlation_id)
        else:
            error = ExpiryError(response, correlation_id=correlation_id)
        error.details.update(ErrorFactory._response_details(response))
        return error

    @staticmethod
    def refresh_unavailable(
        response: httpx.Response | None = None,
        message: str = "Refresh not available",
    ) -> RefreshUnavailableError:
        """Create the error for an expiry failure that cannot be refreshed."""
        correlation_id = (
            ErrorFactory.correlation_id_for(response)
            if response is not None
            else ErrorFactory.generate_correlation_id()
        )
        return RefreshUnavailableError(
            message,
            response=response,
            correlation_id=correlation_id,
        )

    @staticmethod
    def from_exception(
        exc: Exception,
        *,
        correlation_id: str | None = None,
    ) -> AuthRefreshError:
        """Create SDK error from exception.

        Args:
            exc: Original exception.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            Appropriate AuthRefreshError subclass.
        """
        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        if isinstance(exc, AuthRefreshError):
            # Already an SDK error, just ensure correlation ID
            if exc.correlation_id is None:
                exc.correlation_id = correlation_id
            return exc

        if isinstance(exc, httpx.TimeoutException):
            return TransportError(
                f"Request timed out: {exc}",
                correlation_id=correlation_id,
                cause=exc,
            )

        if isinstance(exc, httpx.ConnectError):
            return TransportError(
                f"Connection failed: {exc}",
                correlation_id=correlation_id,
                cause=exc,
            )

        if isinstance(exc, httpx.HTTPStatusError):
            return ErrorFactory.from_http_response(
                exc.response,
                correlation_id=correlation_id,
            )

        return TransportError(
            f"HTTP error: {exc}",
            correlation_id=correlation_id,
            cause=exc,
        )

    @staticmethod
    def config_error(
        message: str,
        *,
        field: str | None = None,
        cause: Exception | None = None,
    ) -> InvalidConfigError:
        """Create configuration error with field details.

        Args:
            message: Error message.
            field: Configuration field name.
            cause: Underlying validation error.

        Returns:
            InvalidConfigError with field details.
        """
        if isinstance(cause, PydanticValidationError) and field is None:
            errors = cause.errors()
            if errors and errors[0].get("loc"):
                field = str(errors[0]["loc"][0])
        error = InvalidConfigError(message, field=field)
        error.__cause__ = cause
        return error
