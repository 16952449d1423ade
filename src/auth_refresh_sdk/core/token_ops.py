"""Centralized token operations for Auth Refresh SDK.

Provides the login and refresh request building and response processing
used by both sync and async clients and coordinators.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..errors import LoginError, RefreshUnavailableError
from ..models import TokenResponse
from .errors import ErrorFactory

if TYPE_CHECKING:
    from ..storage import CredentialStore


class TokenOperations:
    """Token request/response handling shared by sync and async code paths.

    Builds ``httpx.Request`` objects so the caller decides how to send them.
    """

    def __init__(self, store: CredentialStore) -> None:
        """Initialize token operations.

        Args:
            store: Credential store the refresh token is read from.
        """
        self._store = store

    def build_refresh_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        refresh_url: str,
    ) -> httpx.Request:
        """Build the refresh request from the stored refresh token.

        Args:
            client: Client whose base URL and default headers apply.
            refresh_url: Refresh endpoint.

        Returns:
            POST request carrying ``{"refresh_token": ...}`` as JSON.

        Raises:
            RefreshUnavailableError: If no refresh token is stored.
        """
        refresh_token = self._store.get().refresh_token
        if not refresh_token:
            raise RefreshUnavailableError("No refresh token stored")

        return client.build_request(
            "POST",
            refresh_url,
            json={"refresh_token": refresh_token},
            headers={"Accept": "application/json"},
        )

    def process_refresh_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a refresh response.

        Args:
            response: Response from the refresh endpoint.

        Returns:
            Parsed token response.

        Raises:
            ResponseStatusError: On a non-success status.
            ValueError: If the body carries no access token.
        """
        if response.is_error:
            raise ErrorFactory.from_http_response(response)
        return TokenResponse.model_validate(response.json())

    def build_login_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        login_url: str,
        credentials: Mapping[str, Any],
    ) -> httpx.Request:
        """Build the login request.

        Args:
            client: Client whose base URL and default headers apply.
            login_url: Login endpoint.
            credentials: Arbitrary login payload, sent as JSON.

        Returns:
            POST request.
        """
        return client.build_request(
            "POST",
            login_url,
            json=dict(credentials),
            headers={"Accept": "application/json"},
        )

    def process_login_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a login response and store its tokens.

        Args:
            response: Response from the login endpoint.

        Returns:
            The full login response, extra fields included.

        Raises:
            ResponseStatusError: On a non-success status.
            LoginError: If the body has no access token.
        """
        if response.is_error:
            raise ErrorFactory.from_http_response(response)

        try:
            body = response.json()
            token_response = TokenResponse.model_validate(body)
        except (ValueError, ValidationError) as e:
            raise LoginError(
                "Response does not contain access_token",
                status_code=response.status_code,
            ) from e

        # A new session never inherits the previous refresh token.
        self._store.clear()
        self._store.set(token_response.access_token, token_response.refresh_token)
        return token_response
