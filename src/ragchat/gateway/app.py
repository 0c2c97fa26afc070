"""Edge gateway FastAPI application.

Every path except the gateway's own ``/health`` and ``/metrics`` is
handed to the ``RequestPipeline`` and, unless a stage short-circuits,
forwarded to the storage tier.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Request, Response

from ragchat.configs.config import AppConfig, get_app_config
from ragchat.core.security import Credentials
from ragchat.infra.lifespan import inject
from ragchat.infra.logging import setup_logging
from ragchat.infra.metrics import instrument_app
from ragchat.infra.telemetry import init_telemetry

from .forwarder import build_forwarder
from .pipeline import GatewayRequest, RequestPipeline
from .stages import default_stages

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

router = APIRouter()


@router.get("/health", include_in_schema=False)
async def health() -> dict[str, str]:
    return {"status": "UP"}


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(request: Request) -> Response:
    pipeline: RequestPipeline = request.app.state.pipeline
    gateway_request = GatewayRequest(
        method=request.method,
        path=request.scope["path"],
        headers=request.headers.raw,
        query_string=request.url.query,
        body=await request.body(),
    )
    result = await pipeline.handle(gateway_request)

    response = Response(content=result.body, status_code=result.status_code)
    for key, value in result.headers.multi_items():
        if key.lower() == "content-length":
            continue
        response.headers.append(key, value)
    return response


@inject
async def lifespan(
    app: FastAPI,
    config: Annotated[AppConfig, Depends(get_app_config)],
    _forwarder: Annotated[None, Depends(build_forwarder)],
):
    credentials = Credentials.from_config(config.security)
    if not credentials.gateway_key_configured:
        logger.warning(
            "No gateway API key configured: external callers are not authenticated."
        )
    app.state.pipeline = RequestPipeline(
        default_stages(credentials), app.state.forwarder
    )
    yield


def get_app() -> FastAPI:
    """Create and configure the gateway application."""
    config = get_app_config()
    setup_logging(config.logging)

    app = FastAPI(
        title="RAG Chat API Gateway",
        description="Authenticates external callers and forwards to the storage tier",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    init_telemetry(app, config.tracing, trace_outbound_http=True)
    instrument_app(app, config.tracing)
    app.include_router(router)
    return app
