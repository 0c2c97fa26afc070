"""Exception handlers for the storage tier.

Registered at app construction so they are part of the middleware
stack.  Every failure leaves as the same JSON envelope
(``status``, ``error``, ``message``, ``timestamp``, ``details``);
internal detail is logged, never returned.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ragchat.core.errors import (
    IntegrityViolation,
    InternalFailure,
    RagChatError,
    error_body,
    error_body_for,
)

logger = logging.getLogger(__name__)

_GENERIC_MESSAGE = "An unexpected error occurred."


def _field_name(loc: tuple) -> str:
    # ("body", "title") -> "title"; ("query", "page") -> "page"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "request"


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for the error taxonomy and framework errors."""

    @app.exception_handler(RagChatError)
    async def handle_typed_error(request: Request, exc: RagChatError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "%s %s -> %d %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=error_body_for(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = {_field_name(tuple(err["loc"])): err["msg"] for err in exc.errors()}
        logger.warning(
            "%s %s -> 400 invalid fields: %s",
            request.method,
            request.url.path,
            ", ".join(details),
        )
        return JSONResponse(
            status_code=400,
            content=error_body(
                400, "Validation Failed", "One or more fields are invalid.", details
            ),
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(
        request: Request, exc: IntegrityError
    ) -> JSONResponse:
        logger.warning("Integrity violation on %s: %s", request.url.path, exc.orig)
        failure = IntegrityViolation("The operation conflicts with existing data.")
        return JSONResponse(status_code=409, content=error_body_for(failure))

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        logger.error("Database error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=error_body(
                500, "Database Error", "Unable to complete the operation."
            ),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500, content=error_body_for(InternalFailure(_GENERIC_MESSAGE))
        )
