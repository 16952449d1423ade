"""Tracing and structured logging for Auth Refresh SDK.

Spans come from ``trace_operation``. Callers pass ``enabled`` from
``TelemetryConfig`` so request spans and token spans can be switched off
separately. Log events pass through a processor that masks token values.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Generator, MutableMapping

    from .config import TelemetryConfig

SDK_NAME = "auth-refresh-sdk"
SDK_VERSION = "0.1.0"

SECRET_KEYS = frozenset({"access_token", "refresh_token", "authorization", "password"})
REDACTED = "***"

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    """Get or create the SDK tracer."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SDK_NAME, SDK_VERSION)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    """Get or create the SDK logger."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(SDK_NAME)
    return _logger


def redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor that masks token and password values."""
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_telemetry(config: TelemetryConfig) -> None:
    """Install the tracer and the JSON log pipeline described by ``config``.

    A disabled config installs a no-op tracer and leaves logging untouched.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[config.log_level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _tracer = trace.get_tracer(config.service_name, SDK_VERSION)
    _logger = structlog.get_logger(config.service_name)


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
    enabled: bool = True,
) -> Generator[trace.Span, None, None]:
    """Run the block inside a span named ``name``.

    Exceptions mark the span as failed and propagate. With ``enabled``
    false no span is started and ``trace.INVALID_SPAN`` is yielded.
    """
    if not enabled:
        yield trace.INVALID_SPAN
        return

    with get_tracer().start_as_current_span(name, attributes=attributes) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
