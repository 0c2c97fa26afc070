"""Prometheus metrics for both tiers.

Custom counters complement the HTTP metrics provided by
``prometheus-fastapi-instrumentator``.  All metrics use the
``ragchat_`` prefix.
"""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from ragchat.configs.system import TracingConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

GATEWAY_REJECTIONS_TOTAL = Counter(
    "ragchat_gateway_rejections_total",
    "Requests rejected by the gateway API-key stage",
    ["reason"],  # "missing_key" | "invalid_key"
)

GATEWAY_FORWARD_DURATION_SECONDS = Histogram(
    "ragchat_gateway_forward_duration_seconds",
    "Wall-clock time of a forwarded request, downstream included",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

GATEWAY_FORWARD_ERRORS_TOTAL = Counter(
    "ragchat_gateway_forward_errors_total",
    "Forwarded requests that failed at the transport level",
)

# ---------------------------------------------------------------------------
# Storage tier
# ---------------------------------------------------------------------------

GUARD_DENIALS_TOTAL = Counter(
    "ragchat_guard_denials_total",
    "Storage-tier requests denied for a missing or wrong internal key",
)


def instrument_app(app: FastAPI, tracing: TracingConfig) -> None:
    """Attach HTTP instrumentation and the ``/metrics`` endpoint to *app*.

    Must run at construction time, before the middleware stack is built.
    """
    Instrumentator(
        excluded_handlers=tracing.excluded_urls,
    ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
    logger.debug("Prometheus metrics attached to %s", app.title)
