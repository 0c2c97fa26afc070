"""Structured logging bootstrap.

Configures the root logger so every ``logging.getLogger(__name__)`` call
across both tiers (and uvicorn) emits either:

* **JSON lines** (``json_output=True``, default): machine-parseable.
* **Human-readable** (``json_output=False``): coloured, timestamp-prefixed
  lines for local development.

Every record carries the request's ``correlation_id`` (bound per request
by the gateway correlation stage and by the storage-tier guard) and,
when OpenTelemetry tracing is active, the current ``trace_id`` and
``span_id``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

from opentelemetry import trace

from ragchat.configs.system import LoggingConfig

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def bind_correlation_id(value: str) -> None:
    """Attach *value* to every log record emitted by the current task."""
    _correlation_id.set(value)


def get_correlation_id() -> str:
    return _correlation_id.get()


class _RequestContextFilter(logging.Filter):
    """Injects the correlation id and OTEL trace/span IDs into records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get()  # type: ignore[attr-defined]
        ctx = trace.get_current_span().get_span_context()
        if ctx and ctx.is_valid:
            record.trace_id = format(ctx.trace_id, "032x")  # type: ignore[attr-defined]
            record.span_id = format(ctx.span_id, "016x")  # type: ignore[attr-defined]
        else:
            record.trace_id = ""  # type: ignore[attr-defined]
            record.span_id = ""  # type: ignore[attr-defined]
        return True


_DEV_FORMAT = "%(levelprefix)s %(asctime)s %(name)s [%(correlation_id)s]  %(message)s"
_DEV_DATEFMT = "%H:%M:%S"
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite", "opentelemetry")


def _formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        from pythonjsonlogger.json import JsonFormatter

        return JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s "
            "%(correlation_id)s %(trace_id)s %(span_id)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
            },
        )

    from uvicorn.logging import DefaultFormatter

    return DefaultFormatter(fmt=_DEV_FORMAT, datefmt=_DEV_DATEFMT, use_colors=True)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Route root and uvicorn logging through one context-aware handler.

    Called from each tier's app factory; calling it again replaces the
    previous handler rather than stacking a second one.
    """
    config = config or LoggingConfig()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_RequestContextFilter())
    handler.setFormatter(_formatter(config.json_output))

    root = logging.getLogger()
    root.setLevel(config.level.upper())
    root.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
