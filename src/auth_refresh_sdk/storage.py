"""Credential storage for Auth Refresh SDK.

The SDK never persists tokens itself; it talks to a ``CredentialStore``.
``KeyValueCredentialStore`` adapts any string mapping (a shelf, a keyring
wrapper, a dict) using fixed key names.
"""

from __future__ import annotations

import threading
from collections.abc import MutableMapping
from typing import Protocol, runtime_checkable

from .models import CredentialPair

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol for token storage backends.

    Implementations are called from inside the refresh coordinator's
    critical section and must not block for long.
    """

    def get(self) -> CredentialPair:
        """Return the stored tokens."""
        ...

    def set(self, access_token: str, refresh_token: str | None = None) -> None:
        """Replace the access token, and the refresh token when given."""
        ...

    def clear(self) -> None:
        """Remove both tokens."""
        ...


class KeyValueCredentialStore:
    """Credential store on top of a ``MutableMapping[str, str]``."""

    def __init__(
        self,
        backend: MutableMapping[str, str] | None = None,
        *,
        access_key: str = ACCESS_TOKEN_KEY,
        refresh_key: str = REFRESH_TOKEN_KEY,
    ) -> None:
        self._backend: MutableMapping[str, str] = backend if backend is not None else {}
        self._access_key = access_key
        self._refresh_key = refresh_key
        self._lock = threading.Lock()

    def get(self) -> CredentialPair:
        with self._lock:
            return CredentialPair(
                access_token=self._backend.get(self._access_key),
                refresh_token=self._backend.get(self._refresh_key),
            )

    def set(self, access_token: str, refresh_token: str | None = None) -> None:
        with self._lock:
            self._backend[self._access_key] = access_token
            if refresh_token:
                self._backend[self._refresh_key] = refresh_token

    def clear(self) -> None:
        with self._lock:
            self._backend.pop(self._access_key, None)
            self._backend.pop(self._refresh_key, None)


class InMemoryCredentialStore(KeyValueCredentialStore):
    """Process-local store. Tokens are lost when the process exits."""

    def __init__(self, initial: CredentialPair | None = None) -> None:
        super().__init__({})
        if initial is not None and initial.access_token:
            self.set(initial.access_token, initial.refresh_token)
