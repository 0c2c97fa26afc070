"""Downstream forwarding to the storage tier over ``httpx``.

``build_forwarder`` is a lifespan dependency: it opens one shared
``httpx.AsyncClient`` for the process and stores an ``HttpForwarder``
on ``app.state``.  The client is closed on shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from urllib.parse import quote

import httpx
from fastapi import Depends, FastAPI

from ragchat.configs.config import AppConfig, get_app_config
from ragchat.core.errors import error_body
from ragchat.infra.lifespan import get_app
from ragchat.infra.metrics import GATEWAY_FORWARD_ERRORS_TOTAL

from .pipeline import GatewayRequest, GatewayResponse

logger = logging.getLogger(__name__)

# RFC 7230 hop-by-hop headers plus the ones httpx recomputes.
_REQUEST_HEADERS_TO_DROP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)
_RESPONSE_HEADERS_TO_DROP = _REQUEST_HEADERS_TO_DROP | {"content-encoding"}

# RFC 3986 pchar minus percent: the decoded path goes out re-encoded once.
_PATH_SAFE = "/:@!$&'()*+,;="


def _filter_headers(headers: httpx.Headers, drop: frozenset[str]) -> httpx.Headers:
    return httpx.Headers(
        [(k, v) for k, v in headers.multi_items() if k.lower() not in drop]
    )


class HttpForwarder:
    """Send a ``GatewayRequest`` to the storage tier and wrap the reply."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def __call__(self, request: GatewayRequest) -> GatewayResponse:
        url = httpx.URL(
            quote(request.path, safe=_PATH_SAFE),
            query=request.query_string.encode(),
        )
        try:
            upstream = await self._client.request(
                request.method,
                url,
                headers=_filter_headers(request.headers, _REQUEST_HEADERS_TO_DROP),
                content=request.body or None,
            )
        except httpx.TransportError as exc:
            GATEWAY_FORWARD_ERRORS_TOTAL.inc()
            logger.error(
                "Forwarding %s %s failed: %s",
                request.method,
                request.path,
                exc,
                exc_info=True,
            )
            return GatewayResponse.json(
                502,
                error_body(502, "Bad Gateway", "Storage service unavailable"),
            )

        return GatewayResponse(
            status_code=upstream.status_code,
            headers=_filter_headers(upstream.headers, _RESPONSE_HEADERS_TO_DROP),
            body=upstream.content,
        )


async def build_forwarder(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Open the shared HTTP client, attach the forwarder to ``app.state``."""
    gw = config.gateway
    client = httpx.AsyncClient(
        base_url=gw.storage_base_url,
        timeout=gw.forward_timeout_seconds,
    )
    app.state.forwarder = HttpForwarder(client)
    logger.info("Forwarding to storage tier at %s", gw.storage_base_url)
    yield
    await client.aclose()
