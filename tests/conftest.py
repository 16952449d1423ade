"""
Shared test fixtures for Auth Refresh SDK tests.

Provides the fake server, configuration and credential store fixtures.
"""

from __future__ import annotations

import pytest

from auth_refresh_sdk.config import AuthConfig, ClientConfig, TelemetryConfig
from auth_refresh_sdk.models import CredentialPair
from auth_refresh_sdk.storage import InMemoryCredentialStore

from .helpers import BASE_URL, LOGIN_PATH, REFRESH_PATH, FakeAuthServer


@pytest.fixture
def server() -> FakeAuthServer:
    """Provide a fresh fake server."""
    return FakeAuthServer()


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    """Provide telemetry configuration for testing."""
    return TelemetryConfig(
        enabled=False,
        service_name="test-sdk",
        trace_requests=False,
        trace_token_operations=False,
    )


@pytest.fixture
def client_config(telemetry_config: TelemetryConfig) -> ClientConfig:
    """Provide a client configuration pointing at the fake server."""
    return ClientConfig(
        base_url=BASE_URL,
        auth=AuthConfig(
            login_url=LOGIN_PATH,
            refresh_url=REFRESH_PATH,
            refresh_timeout=5.0,
        ),
        telemetry=telemetry_config,
    )


@pytest.fixture
def stale_store() -> InMemoryCredentialStore:
    """Provide a store holding an access token the server no longer accepts."""
    return InMemoryCredentialStore(
        CredentialPair(access_token="stale-access", refresh_token="refresh-1")
    )
