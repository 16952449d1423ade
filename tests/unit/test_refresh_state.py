"""Unit tests for the single-flight refresh state."""

import pytest

from auth_refresh_sdk.core.refresh_state import RefreshPhase, RefreshState


class TestRefreshState:
    """Tests for RefreshState transitions."""

    def test_starts_idle(self) -> None:
        state: RefreshState[str] = RefreshState()

        assert state.phase == RefreshPhase.IDLE
        assert state.handle is None
        assert state.pending_waiters == 0
        assert state.cycles == 0

    def test_begin_and_bind(self) -> None:
        state: RefreshState[str] = RefreshState()

        handle = state.begin(previous_refresh_token="r1")
        state.bind("w1")
        state.bind("w2")

        assert state.phase == RefreshPhase.IN_FLIGHT
        assert handle.cycle == 1
        assert handle.previous_refresh_token == "r1"
        assert state.pending_waiters == 2

    def test_begin_while_in_flight(self) -> None:
        state: RefreshState[str] = RefreshState()
        state.begin(previous_refresh_token="r1")

        with pytest.raises(RuntimeError, match="already in flight"):
            state.begin(previous_refresh_token="r1")

    def test_bind_while_idle(self) -> None:
        state: RefreshState[str] = RefreshState()
        with pytest.raises(RuntimeError):
            state.bind("w1")

    def test_finish_drains_waiters(self) -> None:
        state: RefreshState[str] = RefreshState()
        handle = state.begin(previous_refresh_token=None)
        state.bind("w1")

        waiters = state.finish(handle)

        assert waiters == ["w1"]
        assert handle.waiters == []
        assert state.phase == RefreshPhase.IDLE

    def test_finish_twice(self) -> None:
        state: RefreshState[str] = RefreshState()
        handle = state.begin(previous_refresh_token=None)
        state.bind("w1")
        state.finish(handle)

        assert state.finish(handle) is None

    def test_stale_handle_does_not_finish_new_cycle(self) -> None:
        state: RefreshState[str] = RefreshState()
        first = state.begin(previous_refresh_token=None)
        state.finish(first)
        second = state.begin(previous_refresh_token=None)
        state.bind("w2")

        assert state.finish(first) is None
        assert state.handle is second
        assert state.pending_waiters == 1
        assert second.cycle == 2

    def test_new_generation(self) -> None:
        state: RefreshState[str] = RefreshState()
        handle = state.begin(previous_refresh_token=None)

        assert state.is_current_session(handle)
        state.new_generation()

        assert not state.is_current_session(handle)
        assert state.generation == 1
        assert state.handle is handle
