"""Single-flight token refresh coordination.

A coordinator runs at most one refresh operation at a time. Every request
that needs a fresh token while a refresh is running gets its own future,
bound to the running refresh and settled exactly once when it finishes.

``RefreshCoordinator`` is for threaded callers (``httpx.Client``);
``AsyncRefreshCoordinator`` is for one asyncio event loop
(``httpx.AsyncClient``).
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import ValidationError

from .core.errors import ErrorFactory
from .core.refresh_state import RefreshHandle, RefreshPhase, RefreshState
from .core.token_ops import TokenOperations
from .errors import RefreshFailedError, RefreshTimeoutError
from .models import CredentialPair, RefreshConfiguration, normalize_refresh_result
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    import httpx

    from .models import AsyncRefreshOperation, RefreshOperation, RefreshResult
    from .storage import CredentialStore

W = TypeVar("W")

DEFAULT_EXPIRY_STATUS_CODE = 401
DEFAULT_REFRESH_TIMEOUT = 30.0


class _BaseRefreshCoordinator(ABC, Generic[W]):
    """State, configuration and settlement bookkeeping shared by both coordinators."""

    def __init__(
        self,
        store: CredentialStore,
        *,
        refresh_timeout: float | None = DEFAULT_REFRESH_TIMEOUT,
        trace: bool = True,
    ) -> None:
        self._store = store
        self._refresh_timeout = refresh_timeout
        self._trace = trace
        self._lock = threading.Lock()
        self._state: RefreshState[W] = RefreshState()
        self._config = RefreshConfiguration()
        self._token_ops = TokenOperations(store)
        self._logger = get_logger()

    @property
    def store(self) -> CredentialStore:
        """Get the credential store."""
        return self._store

    @property
    def configuration(self) -> RefreshConfiguration:
        """Get the active refresh configuration."""
        with self._lock:
            return self._config

    @property
    def phase(self) -> RefreshPhase:
        """Get current refresh phase."""
        with self._lock:
            return self._state.phase

    @property
    def is_refreshing(self) -> bool:
        """Check whether a refresh is in flight."""
        return self.phase == RefreshPhase.IN_FLIGHT

    @property
    def pending_waiters(self) -> int:
        """Number of requests waiting on the in-flight refresh."""
        with self._lock:
            return self._state.pending_waiters

    @property
    def refresh_cycles(self) -> int:
        """Number of refresh operations started so far."""
        with self._lock:
            return self._state.cycles

    def can_refresh(self) -> bool:
        """Check a refresh could start now: operation configured and refresh token stored."""
        with self._lock:
            if not self._config.can_refresh:
                return False
            return bool(self._store.get().refresh_token)

    def configure(
        self,
        refresh: str | Callable[[], Any] | None,
        expiry_status_code: int = DEFAULT_EXPIRY_STATUS_CODE,
    ) -> RefreshConfiguration:
        """Set how tokens are refreshed and which status signals expiry.

        Args:
            refresh: Refresh endpoint URL, zero-argument refresh operation,
                or None to disable refreshing.
            expiry_status_code: Response status treated as "credential expired".

        Returns:
            The new configuration.

        Raises:
            InvalidConfigError: On an invalid status code or refresh value.
        """
        if isinstance(refresh, str):
            endpoint: str | None = refresh
            operation: Callable[..., Any] | None = self._endpoint_operation(refresh)
        elif refresh is None or callable(refresh):
            endpoint = None
            operation = refresh
        else:
            msg = "refresh must be an endpoint URL, a callable or None"
            raise ErrorFactory.config_error(msg, field="refresh")

        try:
            config = RefreshConfiguration(
                refresh_endpoint=endpoint,
                expiry_status_code=expiry_status_code,
                refresh_operation=operation,
            )
        except ValidationError as e:
            raise ErrorFactory.config_error(
                "Invalid refresh configuration", cause=e
            ) from e

        # The in-flight handle and its waiters are left untouched.
        with self._lock:
            self._config = config

        self._logger.debug(
            "Refresh configured",
            refresh_endpoint=endpoint,
            expiry_status_code=expiry_status_code,
            refresh_enabled=operation is not None,
        )
        return config

    def clear_auth(self) -> None:
        """Drop the refresh configuration, e.g. on logout.

        Blocks new refresh triggers only. A refresh already in flight still
        settles every waiter bound to it, but its new tokens are not stored.
        """
        with self._lock:
            self._config = RefreshConfiguration(
                expiry_status_code=self._config.expiry_status_code,
            )
            self._state.new_generation()
            in_flight = self._state.phase == RefreshPhase.IN_FLIGHT

        self._logger.debug("Refresh configuration cleared", refresh_in_flight=in_flight)

    def _begin(self) -> tuple[RefreshHandle[W], Callable[..., Any]]:
        """Start a new cycle. Caller holds the lock and has checked the state is idle."""
        operation = self._config.refresh_operation
        if operation is None:
            raise ErrorFactory.refresh_unavailable(message="No refresh operation configured")

        credentials = self._store.get()
        if not credentials.refresh_token:
            raise ErrorFactory.refresh_unavailable(message="No refresh token stored")

        handle = self._state.begin(previous_refresh_token=credentials.refresh_token)
        return handle, operation

    def _complete(
        self,
        handle: RefreshHandle[W],
        credentials: CredentialPair,
    ) -> list[W] | None:
        """Persist new tokens and detach the waiters of a successful cycle."""
        with self._lock:
            waiters = self._state.finish(handle)
            if waiters is None:
                self._logger.warning(
                    "Discarding result of settled refresh",
                    cycle=handle.cycle,
                )
                return None

            if self._state.is_current_session(handle):
                self._store.set(
                    credentials.access_token,  # type: ignore[arg-type]
                    credentials.refresh_token,
                )
            else:
                self._logger.info(
                    "Auth cleared during refresh, new tokens not stored",
                    cycle=handle.cycle,
                )

        self._logger.info(
            "Token refresh succeeded",
            cycle=handle.cycle,
            waiters=len(waiters),
            duration=round(handle.elapsed, 3),
            rotated=credentials.refresh_token != handle.previous_refresh_token,
        )
        return waiters

    def _abort(
        self,
        handle: RefreshHandle[W],
        cause: BaseException,
    ) -> tuple[list[W], RefreshFailedError] | None:
        """Clear credentials and detach the waiters of a failed cycle."""
        if isinstance(cause, RefreshFailedError):
            error = cause
        else:
            error = RefreshFailedError(
                f"Failed to refresh token: {cause}" if str(cause) else "Failed to refresh token",
                cause=cause,
            )

        with self._lock:
            waiters = self._state.finish(handle)
            if waiters is None:
                return None
            cleared = self._state.is_current_session(handle)
            if cleared:
                self._store.clear()

        self._logger.warning(
            "Token refresh failed",
            cycle=handle.cycle,
            credentials_cleared=cleared,
            waiters=len(waiters),
            duration=round(handle.elapsed, 3),
            error=repr(cause),
        )
        return waiters, error

    def _normalize(self, handle: RefreshHandle[W], result: RefreshResult) -> CredentialPair:
        return normalize_refresh_result(result, handle.previous_refresh_token)

    @abstractmethod
    def _endpoint_operation(self, refresh_url: str) -> Callable[..., Any]:
        """Build the default operation that POSTs to a refresh endpoint."""


class RefreshCoordinator(_BaseRefreshCoordinator["Future[str]"]):
    """Thread-safe single-flight refresh coordinator.

    Each refresh operation runs on its own daemon thread so ``acquire_refresh``
    never blocks; callers wait on the returned future. A sync operation that
    outlives ``refresh_timeout`` cannot be interrupted. Its thread is left to
    finish and its result is discarded, so later cycles start regardless.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        refresh_timeout: float | None = DEFAULT_REFRESH_TIMEOUT,
        http_client: httpx.Client | None = None,
        trace: bool = True,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Credential store read and written during refresh.
            refresh_timeout: Seconds before a refresh is failed, None for no limit.
            http_client: Client used by endpoint-based refresh operations.
            trace: Open a ``token_refresh`` span per cycle.
        """
        super().__init__(store, refresh_timeout=refresh_timeout, trace=trace)
        self._http = http_client
        self._closed = False

    def acquire_refresh(self) -> Future[str]:
        """Start a refresh, or join the one in flight.

        Returns:
            Future resolved with the new access token, or failed with
            RefreshFailedError.

        Raises:
            RefreshUnavailableError: If no refresh is in flight and none can start.
        """
        waiter: Future[str] = Future()
        with self._lock:
            if self._state.handle is not None:
                handle = self._state.bind(waiter)
                self._logger.debug(
                    "Joined in-flight token refresh",
                    cycle=handle.cycle,
                    waiters=len(handle.waiters),
                )
                return waiter

            if self._closed:
                raise ErrorFactory.refresh_unavailable(message="Refresh coordinator is closed")

            handle, operation = self._begin()
            self._state.bind(waiter)
            if self._refresh_timeout is not None:
                timer = threading.Timer(self._refresh_timeout, self._expire, args=(handle,))
                timer.daemon = True
                handle.timeout_handle = timer
                timer.start()
            threading.Thread(
                target=self._run,
                args=(handle, operation),
                name=f"token-refresh-{handle.cycle}",
                daemon=True,
            ).start()

        self._logger.info("Token refresh started", cycle=handle.cycle)
        return waiter

    def cancel_refresh(self) -> bool:
        """Fail the in-flight refresh for every current waiter.

        Returns:
            True if a refresh was in flight.
        """
        with self._lock:
            handle = self._state.handle
        if handle is None:
            return False
        self._fail(handle, RefreshFailedError("Token refresh cancelled"))
        return True

    def close(self) -> None:
        """Cancel any in-flight refresh and refuse new ones."""
        with self._lock:
            self._closed = True
        self.cancel_refresh()

    def _run(self, handle: RefreshHandle[Future[str]], operation: RefreshOperation) -> None:
        try:
            with trace_operation(
                "token_refresh",
                attributes={"refresh.cycle": handle.cycle},
                enabled=self._trace,
            ):
                credentials = self._normalize(handle, operation())
        except Exception as e:
            self._fail(handle, e)
            return
        self._succeed(handle, credentials)

    def _expire(self, handle: RefreshHandle[Future[str]]) -> None:
        self._fail(handle, RefreshTimeoutError(timeout_seconds=self._refresh_timeout))

    def _succeed(self, handle: RefreshHandle[Future[str]], credentials: CredentialPair) -> None:
        waiters = self._complete(handle, credentials)
        if waiters is None:
            return
        _cancel_timer(handle)
        for waiter in waiters:
            if waiter.set_running_or_notify_cancel():
                waiter.set_result(credentials.access_token)

    def _fail(self, handle: RefreshHandle[Future[str]], cause: BaseException) -> None:
        settled = self._abort(handle, cause)
        if settled is None:
            return
        _cancel_timer(handle)
        waiters, error = settled
        for waiter in waiters:
            if waiter.set_running_or_notify_cancel():
                waiter.set_exception(error)

    def _endpoint_operation(self, refresh_url: str) -> RefreshOperation:
        def refresh() -> RefreshResult:
            if self._http is None:
                msg = "Endpoint refresh needs an http_client"
                raise RuntimeError(msg)
            request = self._token_ops.build_refresh_request(self._http, refresh_url)
            response = self._http.send(request)
            return self._token_ops.process_refresh_response(response)

        return refresh


class AsyncRefreshCoordinator(_BaseRefreshCoordinator["asyncio.Future[str]"]):
    """Single-flight refresh coordinator for one asyncio event loop.

    ``acquire_refresh`` never awaits between checking for an in-flight
    refresh and binding to it, so the check-and-bind is atomic on the loop.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        refresh_timeout: float | None = DEFAULT_REFRESH_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        trace: bool = True,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Credential store read and written during refresh.
            refresh_timeout: Seconds before a refresh is failed, None for no limit.
            http_client: Client used by endpoint-based refresh operations.
            trace: Open a ``token_refresh`` span per cycle.
        """
        super().__init__(store, refresh_timeout=refresh_timeout, trace=trace)
        self._http = http_client

    def acquire_refresh(self) -> asyncio.Future[str]:
        """Start a refresh, or join the one in flight.

        Must be called from the event loop thread.

        Returns:
            Future resolved with the new access token, or failed with
            RefreshFailedError.

        Raises:
            RefreshUnavailableError: If no refresh is in flight and none can start.
        """
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[str] = loop.create_future()
        with self._lock:
            if self._state.handle is not None:
                handle = self._state.bind(waiter)
                self._logger.debug(
                    "Joined in-flight token refresh",
                    cycle=handle.cycle,
                    waiters=len(handle.waiters),
                )
                return waiter

            handle, operation = self._begin()
            self._state.bind(waiter)
            if self._refresh_timeout is not None:
                handle.timeout_handle = loop.call_later(
                    self._refresh_timeout, self._expire, handle
                )
            handle.task = loop.create_task(
                self._run(handle, operation),
                name=f"token-refresh-{handle.cycle}",
            )

        self._logger.info("Token refresh started", cycle=handle.cycle)
        return waiter

    def cancel_refresh(self) -> bool:
        """Fail the in-flight refresh for every current waiter.

        Returns:
            True if a refresh was in flight.
        """
        with self._lock:
            handle = self._state.handle
        if handle is None:
            return False
        self._fail(handle, RefreshFailedError("Token refresh cancelled"))
        return True

    async def aclose(self) -> None:
        """Cancel any in-flight refresh."""
        self.cancel_refresh()

    async def _run(
        self,
        handle: RefreshHandle[asyncio.Future[str]],
        operation: AsyncRefreshOperation,
    ) -> None:
        try:
            with trace_operation(
                "token_refresh",
                attributes={"refresh.cycle": handle.cycle},
                enabled=self._trace,
            ):
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                credentials = self._normalize(handle, result)
        except asyncio.CancelledError as e:
            self._fail(handle, e)
            raise
        except Exception as e:
            self._fail(handle, e)
            return
        self._succeed(handle, credentials)

    def _expire(self, handle: RefreshHandle[asyncio.Future[str]]) -> None:
        self._fail(handle, RefreshTimeoutError(timeout_seconds=self._refresh_timeout))

    def _succeed(
        self,
        handle: RefreshHandle[asyncio.Future[str]],
        credentials: CredentialPair,
    ) -> None:
        waiters = self._complete(handle, credentials)
        if waiters is None:
            return
        _cancel_timer(handle)
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(credentials.access_token)

    def _fail(
        self,
        handle: RefreshHandle[asyncio.Future[str]],
        cause: BaseException,
    ) -> None:
        settled = self._abort(handle, cause)
        if settled is None:
            return
        _cancel_timer(handle)
        task = handle.task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        waiters, error = settled
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)

    def _endpoint_operation(self, refresh_url: str) -> AsyncRefreshOperation:
        async def refresh() -> RefreshResult:
            if self._http is None:
                msg = "Endpoint refresh needs an http_client"
                raise RuntimeError(msg)
            request = self._token_ops.build_refresh_request(self._http, refresh_url)
            response = await self._http.send(request)
            return self._token_ops.process_refresh_response(response)

        return refresh


def _cancel_timer(handle: RefreshHandle[Any]) -> None:
    timer = handle.timeout_handle
    if timer is not None:
        timer.cancel()
        handle.timeout_handle = None


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
