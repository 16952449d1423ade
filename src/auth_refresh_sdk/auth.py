"""httpx auth flows that refresh expired bearer tokens.

Each request runs through one flow:

    SENT -> DONE | FAILED
         -> AWAITING_REFRESH -> RETRY_SENT -> DONE | FAILED

The request is snapshotted before the first send and replayed at most once,
with only the ``Authorization`` header changed.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from typing import TYPE_CHECKING

import httpx

from .core.errors import ErrorFactory
from .errors import RefreshUnavailableError
from .interceptors import RequestInterceptor, ResponseInterceptor, Verdict
from .models import AttemptContext, RequestSnapshot
from .telemetry import get_logger

if TYPE_CHECKING:
    from .coordinator import AsyncRefreshCoordinator, RefreshCoordinator


class _RefreshingAuthBase(httpx.Auth):
    requires_request_body = True
    requires_response_body = True

    def __init__(self, coordinator: RefreshCoordinator | AsyncRefreshCoordinator) -> None:
        self._request_interceptor = RequestInterceptor(coordinator.store)
        self._response_interceptor = ResponseInterceptor(coordinator)
        self._logger = get_logger()

    def _after_first_attempt(
        self,
        response: httpx.Response,
        attempt: AttemptContext,
    ) -> bool:
        """Return True when the request should go through a refresh."""
        verdict = self._response_interceptor.classify(response, attempt)
        if verdict == Verdict.REFRESH:
            self._logger.info(
                "Access token expired, refreshing",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
            )
            return True

        error = self._response_interceptor.error_for(response, verdict)
        if error is not None:
            raise error
        return False

    def _retry_request(self, snapshot: RequestSnapshot, access_token: str) -> httpx.Request:
        self._logger.debug(
            "Retrying request with refreshed token",
            method=snapshot.method,
            url=snapshot.url,
        )
        return snapshot.to_request(access_token)

    def _after_retry(self, response: httpx.Response, attempt: AttemptContext) -> None:
        verdict = self._response_interceptor.classify(response, attempt)
        self._logger.debug(
            "Retried request completed",
            method=response.request.method,
            url=str(response.request.url),
            status_code=response.status_code,
            verdict=verdict.value,
        )
        error = self._response_interceptor.error_for(response, verdict)
        if error is not None:
            raise error

    def _refresh_failed(self, response: httpx.Response, error: Exception) -> Exception:
        if isinstance(error, RefreshUnavailableError):
            # Auth was cleared between classification and acquisition.
            return ErrorFactory.refresh_unavailable(response, message=error.message)
        self._logger.warning(
            "Refresh failed, returning original failure",
            method=response.request.method,
            url=str(response.request.url),
            status_code=response.status_code,
        )
        return self._response_interceptor.original_failure(response)


class RefreshingAuth(_RefreshingAuthBase):
    """Bearer auth for ``httpx.Client`` with single-flight token refresh."""

    def __init__(self, coordinator: RefreshCoordinator) -> None:
        super().__init__(coordinator)
        self._coordinator = coordinator

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        snapshot = RequestSnapshot.from_request(request)
        attempt = AttemptContext()

        response = yield self._request_interceptor.stamp(request)
        response.read()
        if not self._after_first_attempt(response, attempt):
            return

        attempt = attempt.mark_retried()
        try:
            access_token = self._coordinator.acquire_refresh().result()
        except Exception as e:
            raise self._refresh_failed(response, e) from e

        retry_response = yield self._retry_request(snapshot, access_token)
        retry_response.read()
        self._after_retry(retry_response, attempt)

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        msg = "RefreshingAuth is for httpx.Client; use AsyncRefreshingAuth with httpx.AsyncClient"
        raise RuntimeError(msg)
        yield request  # pragma: no cover


class AsyncRefreshingAuth(_RefreshingAuthBase):
    """Bearer auth for ``httpx.AsyncClient`` with single-flight token refresh."""

    def __init__(self, coordinator: AsyncRefreshCoordinator) -> None:
        super().__init__(coordinator)
        self._coordinator = coordinator

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        msg = "AsyncRefreshingAuth is for httpx.AsyncClient; use RefreshingAuth with httpx.Client"
        raise RuntimeError(msg)
        yield request  # pragma: no cover

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        await request.aread()
        snapshot = RequestSnapshot.from_request(request)
        attempt = AttemptContext()

        response = yield self._request_interceptor.stamp(request)
        await response.aread()
        if not self._after_first_attempt(response, attempt):
            return

        attempt = attempt.mark_retried()
        try:
            access_token = await self._coordinator.acquire_refresh()
        except Exception as e:
            raise self._refresh_failed(response, e) from e

        retry_response = yield self._retry_request(snapshot, access_token)
        await retry_response.aread()
        self._after_retry(retry_response, attempt)
