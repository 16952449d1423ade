"""Async Auth Refresh SDK client."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Self

import httpx

from .auth import AsyncRefreshingAuth
from .config import ClientConfig
from .coordinator import AsyncRefreshCoordinator
from .core.errors import ErrorFactory
from .core.token_ops import TokenOperations
from .errors import AuthRefreshError
from .http import apply_defaults, create_async_http_client, raise_for_status
from .storage import InMemoryCredentialStore
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from .models import RefreshConfiguration, TokenResponse
    from .storage import CredentialStore


class AsyncAuthClient:
    """Async HTTP client that stamps bearer tokens and refreshes them on expiry.

    Bound to one event loop: concurrent tasks that hit an expired token
    trigger a single refresh.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        store: CredentialStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            config: SDK configuration.
            store: Credential store; an in-memory one is used by default.
            transport: Optional httpx transport shared by all requests.
        """
        self.config = config or ClientConfig()
        self._store = store if store is not None else InMemoryCredentialStore()
        self._logger = get_logger()
        self._token_ops = TokenOperations(self._store)
        self._login_response: TokenResponse | None = None

        # Login and refresh calls go out without the refreshing auth flow.
        self._token_http = create_async_http_client(self.config, transport=transport)
        self._coordinator = AsyncRefreshCoordinator(
            self._store,
            refresh_timeout=self.config.auth.refresh_timeout,
            http_client=self._token_http,
            trace=self.config.telemetry.traces_token_operations,
        )
        self._http = create_async_http_client(
            self.config,
            auth=AsyncRefreshingAuth(self._coordinator),
            transport=transport,
        )

        # Tokens restored from a durable store stay refreshable.
        self._coordinator.configure(
            self.config.auth.refresh_url,
            self.config.auth.access_expiration_code,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP clients and cancel any in-flight refresh."""
        await self._coordinator.aclose()
        await self._http.aclose()
        await self._token_http.aclose()

    @property
    def store(self) -> CredentialStore:
        """Get the credential store."""
        return self._store

    @property
    def coordinator(self) -> AsyncRefreshCoordinator:
        """Get the refresh coordinator."""
        return self._coordinator

    @property
    def is_authenticated(self) -> bool:
        """Check whether an access token is stored."""
        return bool(self._store.get().access_token)

    @property
    def login_response(self) -> TokenResponse | None:
        """Full response of the last successful login."""
        return self._login_response

    def configure(
        self,
        refresh: str | Callable[[], Any] | None,
        expiry_status_code: int | None = None,
    ) -> RefreshConfiguration:
        """Set the refresh endpoint or operation and the expiry status code.

        Args:
            refresh: Refresh endpoint URL, zero-argument refresh operation, or None.
            expiry_status_code: Status signalling an expired token
                (defaults to ``config.auth.access_expiration_code``).

        Returns:
            The new refresh configuration.
        """
        code = expiry_status_code or self.config.auth.access_expiration_code
        return self._coordinator.configure(refresh, code)

    def clear_auth(self) -> None:
        """Stop refreshing; the stored tokens are kept."""
        self._coordinator.clear_auth()

    def configure_defaults(
        self,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | httpx.Timeout | None = None,
        base_url: str | None = None,
    ) -> None:
        """Update defaults of the HTTP clients used for requests, login and refresh.

        Args:
            headers: Headers merged into the default headers.
            timeout: New default timeout.
            base_url: New base URL.
        """
        for http in (self._http, self._token_http):
            apply_defaults(http, headers=headers, timeout=timeout, base_url=base_url)

    async def login(self, credentials: Mapping[str, Any]) -> TokenResponse:
        """Log in and store the returned tokens.

        Args:
            credentials: Payload posted as JSON to ``config.auth.login_url``.

        Returns:
            The full login response.

        Raises:
            InvalidConfigError: If no login URL is configured.
            LoginError: If the response carries no access token.
            ResponseStatusError: If the login endpoint rejects the request.
            TransportError: On network failure.
        """
        login_url = self.config.auth.login_url
        if not login_url:
            msg = "login_url is required to log in"
            raise ErrorFactory.config_error(msg, field="login_url")

        with trace_operation(
            "login", enabled=self.config.telemetry.traces_token_operations
        ):
            # A refresh still running for the previous session must not
            # overwrite the new tokens.
            self._coordinator.clear_auth()
            request = self._token_ops.build_login_request(
                self._token_http, login_url, credentials
            )
            try:
                response = await self._token_http.send(request)
            except httpx.HTTPError as e:
                raise ErrorFactory.from_exception(e) from e

            token_response = self._token_ops.process_login_response(response)
            self._login_response = token_response
            self.configure(self.config.auth.refresh_url)

        self._logger.info(
            "Logged in",
            refresh_enabled=token_response.refresh_token is not None
            and self.config.auth.refresh_url is not None,
        )
        return token_response

    def logout(self) -> None:
        """Forget tokens, the login response and the refresh configuration."""
        with trace_operation(
            "logout", enabled=self.config.telemetry.traces_token_operations
        ):
            self._coordinator.clear_auth()
            self._store.clear()
            self._login_response = None
        self._logger.info("Logged out")

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, refreshing the access token once if it expired.

        Args:
            method: HTTP method.
            url: URL, relative to ``config.base_url`` when set.
            **kwargs: Passed to ``httpx.AsyncClient.request``.

        Returns:
            Successful HTTP response.

        Raises:
            ExpiryError: Original expiry failure when the refresh failed.
            RetryExhaustedError: The retried request expired as well.
            RefreshUnavailableError: Expired token and nothing to refresh with.
            ResponseStatusError: Any other failed response.
            TransportError: On network failure.
        """
        with trace_operation(
            "http_request",
            attributes={"http.method": method, "http.url": str(url)},
            enabled=self.config.telemetry.traces_requests,
        ) as span:
            try:
                response = await self._http.request(method, url, **kwargs)
            except AuthRefreshError:
                raise
            except httpx.HTTPError as e:
                raise ErrorFactory.from_exception(e) from e
            span.set_attribute("http.status_code", response.status_code)
            return raise_for_status(response)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request."""
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a PUT request."""
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a PATCH request."""
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request."""
        return await self.request("DELETE", url, **kwargs)
