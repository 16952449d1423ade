"""Pydantic models for Auth Refresh SDK.

Uses Pydantic v2 with frozen models for immutability.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated, Any, Self, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field

AUTHORIZATION_HEADER = "Authorization"


class TokenResponse(BaseModel):
    """Body returned by the login and refresh endpoints."""

    model_config = ConfigDict(frozen=True, extra="allow")

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None


class CredentialPair(BaseModel):
    """Access and refresh token as held by a credential store."""

    model_config = ConfigDict(frozen=True)

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when neither token is present."""
        return self.access_token is None and self.refresh_token is None


RefreshResult = Union[str, TokenResponse, CredentialPair]
RefreshOperation = Callable[[], RefreshResult]
AsyncRefreshOperation = Callable[[], Awaitable[RefreshResult]]


class RefreshConfiguration(BaseModel):
    """Active refresh settings of a coordinator. One per session."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    refresh_endpoint: str | None = None
    expiry_status_code: Annotated[int, Field(ge=100, le=599)] = 401
    refresh_operation: Callable[..., Any] | None = None

    @property
    def can_refresh(self) -> bool:
        """Check a refresh operation is set."""
        return self.refresh_operation is not None


class RequestSnapshot(BaseModel):
    """Immutable copy of an outbound request, replayable with a new token."""

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    headers: tuple[tuple[str, str], ...] = ()
    content: bytes = b""
    extensions: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, request: httpx.Request) -> Self:
        """Snapshot a request, reading its body into memory."""
        content = request.read()
        headers = tuple(
            (key, value)
            for key, value in request.headers.multi_items()
            if key.lower() != AUTHORIZATION_HEADER.lower()
        )
        return cls(
            method=request.method,
            url=str(request.url),
            headers=headers,
            content=content,
            extensions=dict(request.extensions),
        )

    def to_request(self, access_token: str | None = None) -> httpx.Request:
        """Rebuild the request, stamping the given bearer token."""
        headers = httpx.Headers(list(self.headers))
        if access_token:
            headers[AUTHORIZATION_HEADER] = f"Bearer {access_token}"
        return httpx.Request(
            self.method,
            self.url,
            headers=headers,
            content=self.content,
            extensions=dict(self.extensions),
        )


class AttemptContext(BaseModel):
    """Per-request retry state threaded through the auth flow."""

    model_config = ConfigDict(frozen=True)

    retried: bool = False

    def mark_retried(self) -> AttemptContext:
        """Return the context for the replayed attempt."""
        return self.model_copy(update={"retried": True})


def normalize_refresh_result(
    result: RefreshResult,
    previous_refresh_token: str | None,
) -> CredentialPair:
    """Turn whatever a refresh operation returned into a credential pair.

    Falls back to the previous refresh token when the server did not rotate it.
    """
    if isinstance(result, str):
        if not result:
            msg = "Refresh operation returned an empty access token"
            raise ValueError(msg)
        return CredentialPair(access_token=result, refresh_token=previous_refresh_token)

    if isinstance(result, (TokenResponse, CredentialPair)):
        if not result.access_token:
            msg = "Refresh operation returned no access token"
            raise ValueError(msg)
        return CredentialPair(
            access_token=result.access_token,
            refresh_token=result.refresh_token or previous_refresh_token,
        )

    msg = f"Unsupported refresh result type: {type(result).__name__}"
    raise TypeError(msg)
