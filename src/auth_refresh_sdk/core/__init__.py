"""Core components for Auth Refresh SDK.

Refresh state machine, token request handling and error creation shared
between the sync and async code paths.
"""

from __future__ import annotations

from .errors import ErrorFactory
from .refresh_state import RefreshHandle, RefreshPhase, RefreshState
from .token_ops import TokenOperations

__all__ = [
    "ErrorFactory",
    "RefreshHandle",
    "RefreshPhase",
    "RefreshState",
    "TokenOperations",
]
