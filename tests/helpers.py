"""Test helpers: a fake auth server behind ``httpx.MockTransport``, a span recorder and polling utilities."""

from __future__ import annotations

import asyncio
import json
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import httpx
import pytest
from opentelemetry import trace

BASE_URL = "https://api.example.com"
LOGIN_PATH = "/auth/login"
REFRESH_PATH = "/auth/refresh"
PASSWORD = "s3cret"


class FakeAuthServer:
    """In-process API server with a login and a refresh endpoint.

    Protected paths answer 200 only for the currently valid access token
    and ``expiry_status`` otherwise. Refresh hands out ``access-N`` tokens.
    """

    def __init__(self, expiry_status: int = 401) -> None:
        self.expiry_status = expiry_status
        self.valid_access: str | None = "access-1"
        self.valid_refresh: str | None = "refresh-1"
        self.rotate_refresh = False
        self.refresh_status = 200
        self.refresh_gate: threading.Event | None = None
        self.async_refresh_gate: asyncio.Event | None = None
        self.refresh_calls = 0
        self.login_calls = 0
        self.requests: list[httpx.Request] = []
        self._issued = 1
        self._lock = threading.Lock()

    def expire(self) -> None:
        """Invalidate the current access token."""
        with self._lock:
            self.valid_access = None

    def issue(self) -> str:
        """Issue and accept a new access token."""
        with self._lock:
            self._issued += 1
            self.valid_access = f"access-{self._issued}"
            return self.valid_access

    def hits(self, path: str) -> list[httpx.Request]:
        """Recorded requests for one path."""
        with self._lock:
            return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)

        path = request.url.path
        if path == LOGIN_PATH:
            return self._login(request)
        if path == REFRESH_PATH:
            if self.refresh_gate is not None:
                self.refresh_gate.wait(timeout=5)
            return self._refresh(request)
        return self._protected(request)

    async def async_handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == REFRESH_PATH and self.async_refresh_gate is not None:
            await self.async_refresh_gate.wait()
        return self.handler(request)

    def _login(self, request: httpx.Request) -> httpx.Response:
        self.login_calls += 1
        body = json.loads(request.content)
        if body.get("password") != PASSWORD:
            return httpx.Response(401, json={"error": "invalid_grant"})
        if body.get("username") == "no-token":
            return httpx.Response(200, json={"user": {"name": "nobody"}})
        self.valid_refresh = "refresh-1"
        return httpx.Response(
            200,
            json={
                "access_token": self.issue(),
                "refresh_token": self.valid_refresh,
                "user": {"name": body.get("username")},
            },
        )

    def _refresh(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.refresh_calls += 1
        if self.refresh_status != 200:
            return httpx.Response(self.refresh_status, json={"error": "refresh_rejected"})
        body = json.loads(request.content)
        if body.get("refresh_token") != self.valid_refresh:
            return httpx.Response(401, json={"error": "invalid_refresh_token"})
        payload: dict[str, str] = {"access_token": self.issue()}
        if self.rotate_refresh:
            with self._lock:
                self.valid_refresh = f"refresh-{self._issued}"
            payload["refresh_token"] = self.valid_refresh
        return httpx.Response(200, json=payload)

    def _protected(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/offline":
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/api/forbidden":
            return httpx.Response(403, json={"error": "forbidden"})

        expected = f"Bearer {self.valid_access}"
        always_expired = request.url.path == "/api/always-expired"
        if always_expired or request.headers.get("Authorization") != expected:
            return httpx.Response(
                self.expiry_status,
                json={"error": "token_expired"},
                headers={"X-Request-ID": "req-expired"},
            )
        return httpx.Response(
            200,
            json={"path": request.url.path, "body": request.content.decode()},
        )


class RecordingTracer:
    """Tracer stand-in that records span names and attributes."""

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    @property
    def names(self) -> list[str]:
        with self._lock:
            return [name for name, _ in self.spans]

    @contextmanager
    def start_as_current_span(
        self, name: str, attributes: dict[str, Any] | None = None, **kwargs: Any
    ) -> Iterator[trace.Span]:
        with self._lock:
            self.spans.append((name, dict(attributes or {})))
        yield trace.INVALID_SPAN


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` from a thread until it holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not met in time")
        time.sleep(0.005)


async def async_wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not met in time")
        await asyncio.sleep(0.001)
