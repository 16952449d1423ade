"""Auth Refresh Python SDK."""

from .async_client import AsyncAuthClient
from .auth import AsyncRefreshingAuth, RefreshingAuth
from .client import AuthClient
from .config import AuthConfig, ClientConfig, TelemetryConfig
from .coordinator import AsyncRefreshCoordinator, RefreshCoordinator
from .errors import (
    AuthRefreshError,
    ErrorCode,
    ExpiryError,
    InvalidConfigError,
    LoginError,
    RefreshFailedError,
    RefreshTimeoutError,
    RefreshUnavailableError,
    ResponseStatusError,
    RetryExhaustedError,
    TransportError,
)
from .models import CredentialPair, RefreshConfiguration, RequestSnapshot, TokenResponse
from .storage import CredentialStore, InMemoryCredentialStore, KeyValueCredentialStore

__all__ = [
    "AsyncAuthClient",
    "AsyncRefreshCoordinator",
    "AsyncRefreshingAuth",
    "AuthClient",
    "AuthConfig",
    "AuthRefreshError",
    "ClientConfig",
    "CredentialPair",
    "CredentialStore",
    "ErrorCode",
    "ExpiryError",
    "InMemoryCredentialStore",
    "InvalidConfigError",
    "KeyValueCredentialStore",
    "LoginError",
    "RefreshConfiguration",
    "RefreshCoordinator",
    "RefreshFailedError",
    "RefreshTimeoutError",
    "RefreshUnavailableError",
    "RefreshingAuth",
    "RequestSnapshot",
    "ResponseStatusError",
    "RetryExhaustedError",
    "TelemetryConfig",
    "TokenResponse",
    "TransportError",
]

__version__ = "0.1.0"
