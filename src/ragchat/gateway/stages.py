"""The four gateway stages, in the order they must run."""

from __future__ import annotations

import logging
import time
import uuid

from ragchat.core.errors import error_body
from ragchat.core.security import (
    API_KEY_HEADER,
    CORRELATION_ID_HEADER,
    INTERNAL_KEY_HEADER,
    Credentials,
    keys_match,
)
from ragchat.infra.logging import bind_correlation_id
from ragchat.infra.metrics import (
    GATEWAY_FORWARD_DURATION_SECONDS,
    GATEWAY_REJECTIONS_TOTAL,
)

from .pipeline import Forward, GatewayRequest, GatewayResponse, Stage

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Invalid or missing API key"


class CorrelationStage(Stage):
    """Attach a fresh UUID4 ``correlation-id`` unless one is present."""

    name = "correlation"

    async def process(self, request: GatewayRequest) -> GatewayResponse | None:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER)
        if correlation_id is None:
            correlation_id = str(uuid.uuid4())
            request.headers[CORRELATION_ID_HEADER] = correlation_id
        bind_correlation_id(correlation_id)
        return None


class ApiKeyStage(Stage):
    """Validate ``X-API-KEY`` against the configured gateway key."""

    name = "api_key"

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials

    async def process(self, request: GatewayRequest) -> GatewayResponse | None:
        if not self._credentials.gateway_key_configured:
            return None
        if self._credentials.is_public_path(request.path):
            return None

        provided = request.headers.get(API_KEY_HEADER)
        if keys_match(provided, self._credentials.gateway_api_key):
            return None

        GATEWAY_REJECTIONS_TOTAL.labels(
            reason="missing_key" if provided is None else "invalid_key"
        ).inc()
        logger.warning(
            "Rejected %s %s: %s",
            request.method,
            request.path,
            "missing API key" if provided is None else "invalid API key",
        )
        return GatewayResponse.json(
            401, error_body(401, "Unauthorized", UNAUTHORIZED_MESSAGE)
        )


class InternalKeyStage(Stage):
    """Set ``X-INTERNAL-KEY`` on every request that got this far."""

    name = "internal_key"

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials

    async def process(self, request: GatewayRequest) -> GatewayResponse | None:
        request.headers[INTERNAL_KEY_HEADER] = self._credentials.internal_service_key
        return None


class LoggingStage(Stage):
    """Log method, path, status and elapsed time of the forwarded call."""

    name = "logging"

    async def around_forward(
        self, request: GatewayRequest, call_next: Forward
    ) -> GatewayResponse:
        start = time.perf_counter()
        status: int | None = None
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            GATEWAY_FORWARD_DURATION_SECONDS.observe(elapsed)
            elapsed_ms = int(elapsed * 1000)
            if status is None:
                logger.error(
                    "%s %s -> failed (%d ms)", request.method, request.path, elapsed_ms
                )
            else:
                logger.info(
                    "%s %s -> %d (%d ms)",
                    request.method,
                    request.path,
                    status,
                    elapsed_ms,
                )


def default_stages(credentials: Credentials) -> list[Stage]:
    """The gateway chain.  Order is significant."""
    return [
        CorrelationStage(),
        ApiKeyStage(credentials),
        InternalKeyStage(credentials),
        LoggingStage(),
    ]
