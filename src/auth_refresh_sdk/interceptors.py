"""Request and response interceptors.

The request interceptor stamps the stored access token on outbound
requests. The response interceptor classifies a response for one attempt
and builds the error a caller sees when the refresh path cannot help.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from .core.errors import ErrorFactory
from .models import AUTHORIZATION_HEADER

if TYPE_CHECKING:
    import httpx

    from .coordinator import _BaseRefreshCoordinator
    from .errors import AuthRefreshError
    from .models import AttemptContext
    from .storage import CredentialStore


class Verdict(StrEnum):
    """What to do with a response."""

    DONE = "done"
    FAILED = "failed"
    REFRESH = "refresh"
    REFRESH_UNAVAILABLE = "refresh_unavailable"
    RETRY_EXHAUSTED = "retry_exhausted"


class RequestInterceptor:
    """Attaches the current access token as a bearer credential."""

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def stamp(self, request: httpx.Request) -> httpx.Request:
        """Set ``Authorization`` from the store, read at send time.

        Without a stored token the request goes out as it is.
        """
        access_token = self._store.get().access_token
        if access_token:
            request.headers[AUTHORIZATION_HEADER] = f"Bearer {access_token}"
        return request


class ResponseInterceptor:
    """Classifies responses against the coordinator's expiry settings."""

    def __init__(self, coordinator: _BaseRefreshCoordinator) -> None:
        self._coordinator = coordinator

    def classify(self, response: httpx.Response, attempt: AttemptContext) -> Verdict:
        """Decide the next step for ``response`` within one attempt.

        Expiry-class means: the status equals the configured expiry code,
        a refresh operation is configured, a refresh token is stored and the
        attempt was not retried yet.
        """
        if not response.is_error:
            return Verdict.DONE

        expiry_status_code = self._coordinator.configuration.expiry_status_code
        if response.status_code != expiry_status_code:
            return Verdict.FAILED

        if attempt.retried:
            return Verdict.RETRY_EXHAUSTED

        if not self._coordinator.can_refresh():
            return Verdict.REFRESH_UNAVAILABLE

        return Verdict.REFRESH

    def error_for(
        self,
        response: httpx.Response,
        verdict: Verdict,
    ) -> AuthRefreshError | None:
        """Error to raise for an expiry response that will not be retried.

        Returns None for verdicts that hand the response back unmodified.
        """
        if verdict == Verdict.REFRESH_UNAVAILABLE:
            return ErrorFactory.refresh_unavailable(response)
        if verdict == Verdict.RETRY_EXHAUSTED:
            return ErrorFactory.expired(response, retried=True)
        return None

    def original_failure(self, response: httpx.Response) -> AuthRefreshError:
        """Error for the triggering response after the refresh failed."""
        return ErrorFactory.expired(response)
