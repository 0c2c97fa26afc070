"""Storage-tier FastAPI application entry point."""

import logging
from typing import Annotated

from fastapi import Depends, FastAPI
from fastapi.security import APIKeyHeader

from ragchat.api.exceptions import register_exception_handlers
from ragchat.api.health import router as health_router
from ragchat.api.messages import router as messages_router
from ragchat.api.sessions import router as sessions_router
from ragchat.configs.config import get_app_config
from ragchat.core.security import INTERNAL_KEY_HEADER, Credentials
from ragchat.infra.db import build_db
from ragchat.infra.guard import InternalKeyMiddleware
from ragchat.infra.lifespan import inject
from ragchat.infra.logging import setup_logging
from ragchat.infra.metrics import instrument_app
from ragchat.infra.telemetry import init_telemetry

logger = logging.getLogger(__name__)

# Documents the header in OpenAPI; enforcement is InternalKeyMiddleware.
internal_key_scheme = APIKeyHeader(
    name=INTERNAL_KEY_HEADER,
    auto_error=False,
    description="Internal service key injected by the API gateway",
)


@inject
async def lifespan(
    app: FastAPI,
    _db: Annotated[None, Depends(build_db)],
):
    logger.info("Storage service ready")
    yield
    logger.info("Storage service shutting down")


def get_app() -> FastAPI:
    """Create and configure the storage-tier application."""
    config = get_app_config()
    setup_logging(config.logging)
    credentials = Credentials.from_config(config.security)
    if not credentials.internal_service_key:
        logger.warning(
            "No internal service key configured: every protected request will be denied."
        )

    app = FastAPI(
        title="RAG Chat Storage Service",
        description=(
            "Stores and retrieves chat sessions and messages. All business "
            "endpoints under /api require the internal service key "
            f"({INTERNAL_KEY_HEADER}) added by the API gateway; docs and "
            "health endpoints are public."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.add_middleware(InternalKeyMiddleware, credentials=credentials)
    init_telemetry(app, config.tracing)
    instrument_app(app, config.tracing)

    secured = [Depends(internal_key_scheme)]
    app.include_router(health_router)
    app.include_router(sessions_router, dependencies=secured)
    app.include_router(messages_router, dependencies=secured)

    return app
