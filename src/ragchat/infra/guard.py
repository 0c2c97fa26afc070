"""Storage-tier authorization boundary.

``AuthorizationGuard`` decides, per request, whether the caller proved
it is the gateway by presenting the internal service key.  Allow-listed
public paths (docs, health, metrics) skip the check.  The allow-list is
matched against the canonical path, so ``/docs/../api/...`` is not public.

``InternalKeyMiddleware`` applies the guard to every HTTP request as a
pure ASGI middleware (not ``BaseHTTPMiddleware``) so it never buffers
bodies.  Denied requests get a terse 403 and never reach a route.
Accepted requests carry ``caller`` in ``scope["state"]`` for audit
logging.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from ragchat.core.errors import AuthorizationFailure, error_body_for
from ragchat.core.security import (
    CORRELATION_ID_HEADER,
    INTERNAL_CALLER,
    INTERNAL_KEY_HEADER,
    Credentials,
    canonical_path,
    keys_match,
)
from ragchat.infra.logging import bind_correlation_id
from ragchat.infra.metrics import GUARD_DENIALS_TOTAL

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = "Forbidden: Invalid internal key"


class AuthorizationGuard:
    """Checks the internal credential against the configured key."""

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials

    def authorize(self, path: str, headers: Headers) -> str | None:
        """Return the trusted caller identity, or ``None`` for public paths.

        Raises:
            AuthorizationFailure: the internal key is missing or wrong.
        """
        if self._credentials.is_public_path(canonical_path(path)):
            return None
        provided = headers.get(INTERNAL_KEY_HEADER)
        if not keys_match(provided, self._credentials.internal_service_key):
            raise AuthorizationFailure(FORBIDDEN_MESSAGE)
        return INTERNAL_CALLER


class InternalKeyMiddleware:
    """Pure ASGI middleware enforcing ``AuthorizationGuard``."""

    def __init__(self, app: ASGIApp, credentials: Credentials) -> None:
        self.app = app
        self.guard = AuthorizationGuard(credentials)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        bind_correlation_id(headers.get(CORRELATION_ID_HEADER, ""))
        path = scope.get("path", "")

        try:
            caller = self.guard.authorize(path, headers)
        except AuthorizationFailure as exc:
            GUARD_DENIALS_TOTAL.inc()
            logger.warning("Denied %s %s: %s", scope.get("method"), path, exc.message)
            await _send_json(send, exc.status_code, error_body_for(exc))
            return

        if caller is not None:
            scope.setdefault("state", {})["caller"] = caller
        await self.app(scope, receive, send)


async def _send_json(send: Send, status: int, payload: dict[str, Any]) -> None:
    body = json.dumps(payload).encode()
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
            ],
        }
    )
    await send({"type": "http.response.body", "body": body})
