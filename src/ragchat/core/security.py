"""Credentials and request-boundary constants.

``Credentials`` is built once at startup from ``SecurityConfig`` and
handed to the gateway pipeline and the storage-tier guard.  It is
frozen; nothing mutates it after construction.
"""

from __future__ import annotations

import hmac
from collections.abc import Iterable
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field

from ragchat.configs.system import DEFAULT_PUBLIC_PATH_PREFIXES, SecurityConfig

API_KEY_HEADER = "X-API-KEY"
INTERNAL_KEY_HEADER = "X-INTERNAL-KEY"
CORRELATION_ID_HEADER = "correlation-id"

INTERNAL_CALLER = "gateway"


class Credentials(BaseModel):
    """Immutable pair of secrets plus the public path allow-list."""

    model_config = ConfigDict(frozen=True)

    gateway_api_key: str = ""
    internal_service_key: str = ""
    public_path_prefixes: tuple[str, ...] = Field(
        default=tuple(DEFAULT_PUBLIC_PATH_PREFIXES)
    )

    @classmethod
    def from_config(cls, config: SecurityConfig) -> "Credentials":
        return cls(
            gateway_api_key=config.gateway_api_key,
            internal_service_key=config.internal_service_key,
            public_path_prefixes=tuple(config.public_path_prefixes),
        )

    @property
    def gateway_key_configured(self) -> bool:
        return bool(self.gateway_api_key.strip())

    def is_public_path(self, path: str) -> bool:
        return is_public_path(path, self.public_path_prefixes)


def canonical_path(path: str) -> str:
    """Fully percent-decode *path* and resolve its dot and empty segments.

    Backslashes count as separators and ``..`` never climbs above the
    root.  A trailing slash is kept.  Access checks and forwarding must
    both use this form so they agree on which resource is addressed.
    """
    previous, decoded = None, path
    while decoded != previous:
        previous, decoded = decoded, unquote(decoded)
    decoded = decoded.replace("\\", "/")

    segments: list[str] = []
    for segment in decoded.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)

    canonical = "/" + "/".join(segments)
    if segments and decoded.endswith("/"):
        canonical += "/"
    return canonical


def is_public_path(path: str, prefixes: Iterable[str]) -> bool:
    """Return ``True`` if *path* is, or lies under, an allow-listed prefix.

    Matching is per path segment: ``/docs`` covers ``/docs`` and
    ``/docs/oauth2-redirect`` but not ``/docsanything``.
    """
    for prefix in prefixes:
        base = prefix.rstrip("/")
        if path == prefix or path == base or path.startswith(base + "/"):
            return True
    return False


def keys_match(provided: str | None, expected: str) -> bool:
    """Exact, constant-time comparison.  An unset *expected* never matches."""
    if not expected or provided is None:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())
