"""HTTP client utilities for Auth Refresh SDK.

Builds the ``httpx`` clients used by the SDK clients and turns failed
responses into SDK errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from .core.errors import ErrorFactory
from .telemetry import SDK_NAME, SDK_VERSION

if TYPE_CHECKING:
    from .config import ClientConfig

USER_AGENT = f"{SDK_NAME}/{SDK_VERSION} Python"


def _client_kwargs(config: ClientConfig) -> dict[str, Any]:
    return {
        "base_url": config.base_url_str,
        "timeout": httpx.Timeout(
            connect=config.connect_timeout,
            read=config.timeout,
            write=config.timeout,
            pool=config.timeout,
        ),
        "headers": {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            **config.headers,
        },
        "follow_redirects": False,
    }


def create_http_client(
    config: ClientConfig,
    *,
    auth: httpx.Auth | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create configured sync HTTP client.

    Args:
        config: SDK configuration.
        auth: Optional auth flow applied to every request.
        transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.

    Returns:
        Configured httpx.Client.
    """
    return httpx.Client(auth=auth, transport=transport, **_client_kwargs(config))


def create_async_http_client(
    config: ClientConfig,
    *,
    auth: httpx.Auth | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        config: SDK configuration.
        auth: Optional auth flow applied to every request.
        transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(auth=auth, transport=transport, **_client_kwargs(config))


def raise_for_status(response: httpx.Response) -> httpx.Response:
    """Raise ResponseStatusError for a failed response, return it otherwise."""
    if response.is_error:
        raise ErrorFactory.from_http_response(response)
    return response


def apply_defaults(
    client: httpx.Client | httpx.AsyncClient,
    *,
    headers: dict[str, str] | None = None,
    timeout: float | httpx.Timeout | None = None,
    base_url: str | None = None,
) -> None:
    """Update defaults of an existing client in place.

    Args:
        client: Client to update.
        headers: Headers merged into the client's default headers.
        timeout: New default timeout.
        base_url: New base URL.
    """
    if headers:
        client.headers.update(headers)
    if timeout is not None:
        client.timeout = timeout  # type: ignore[assignment]
    if base_url is not None:
        client.base_url = base_url  # type: ignore[assignment]
