"""Single-flight refresh state shared by the sync and async coordinators.

``RefreshState`` is either idle or holds exactly one ``RefreshHandle``.
It does no locking of its own: every method is called with the owning
coordinator's lock held.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

W = TypeVar("W")


class RefreshPhase(StrEnum):
    """Refresh coordinator phases."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"


@dataclass(eq=False)
class RefreshHandle(Generic[W]):
    """One running refresh cycle and the waiters bound to it."""

    cycle: int
    generation: int
    previous_refresh_token: str | None
    waiters: list[W] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    # Timer or TimerHandle enforcing the refresh timeout.
    timeout_handle: Any = None
    # asyncio.Task running the operation (async coordinator only).
    task: Any = None

    @property
    def elapsed(self) -> float:
        """Seconds since the cycle started."""
        return time.monotonic() - self.started_at


class RefreshState(Generic[W]):
    """Idle, or one in-flight handle with its waiter list."""

    def __init__(self) -> None:
        self._handle: RefreshHandle[W] | None = None
        self._cycles = 0
        self._generation = 0

    @property
    def phase(self) -> RefreshPhase:
        """Get current phase."""
        return RefreshPhase.IDLE if self._handle is None else RefreshPhase.IN_FLIGHT

    @property
    def handle(self) -> RefreshHandle[W] | None:
        """In-flight handle, or None when idle."""
        return self._handle

    @property
    def generation(self) -> int:
        """Session generation, bumped whenever auth state is cleared."""
        return self._generation

    @property
    def cycles(self) -> int:
        """Number of refresh cycles started so far."""
        return self._cycles

    @property
    def pending_waiters(self) -> int:
        """Number of waiters bound to the in-flight handle."""
        return 0 if self._handle is None else len(self._handle.waiters)

    def begin(self, previous_refresh_token: str | None) -> RefreshHandle[W]:
        """Move from idle to in-flight.

        Raises:
            RuntimeError: If a refresh is already in flight.
        """
        if self._handle is not None:
            msg = f"Refresh cycle {self._handle.cycle} is already in flight"
            raise RuntimeError(msg)
        self._cycles += 1
        self._handle = RefreshHandle(
            cycle=self._cycles,
            generation=self._generation,
            previous_refresh_token=previous_refresh_token,
        )
        return self._handle

    def bind(self, waiter: W) -> RefreshHandle[W]:
        """Attach a waiter to the in-flight handle.

        Raises:
            RuntimeError: If no refresh is in flight.
        """
        if self._handle is None:
            msg = "No refresh in flight to bind to"
            raise RuntimeError(msg)
        self._handle.waiters.append(waiter)
        return self._handle

    def finish(self, handle: RefreshHandle[W]) -> list[W] | None:
        """Move back to idle and hand over the drained waiter list.

        Returns None when ``handle`` is no longer the in-flight one, i.e.
        it was already settled by a timeout or cancellation.
        """
        if self._handle is not handle:
            return None
        waiters = handle.waiters
        handle.waiters = []
        self._handle = None
        return waiters

    def is_current_session(self, handle: RefreshHandle[W]) -> bool:
        """True when auth state was not cleared since ``handle`` started."""
        return handle.generation == self._generation

    def new_generation(self) -> int:
        """Invalidate the session the in-flight handle belongs to."""
        self._generation += 1
        return self._generation
