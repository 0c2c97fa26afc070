"""Centralized FastAPI dependency type aliases.

Import these ``*Dep`` aliases in route modules instead of writing
``Annotated[T, Depends(get_xxx)]`` everywhere.  Each alias maps to one
``get_*`` factory and can be overridden in tests via
``app.dependency_overrides[get_xxx] = ...``.
"""

from typing import Annotated

from fastapi import Depends, Request

from ragchat.configs.config import get_pagination_config
from ragchat.configs.system import PaginationConfig
from ragchat.infra.db import (
    MessageStore,
    SessionStore,
    get_message_store,
    get_session_store,
)

SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
MessageStoreDep = Annotated[MessageStore, Depends(get_message_store)]
PaginationConfigDep = Annotated[PaginationConfig, Depends(get_pagination_config)]

ANONYMOUS_CALLER = "anonymous"


def get_caller(request: Request) -> str:
    """Identity the authorization guard attached to this request."""
    return getattr(request.state, "caller", ANONYMOUS_CALLER)


CallerDep = Annotated[str, Depends(get_caller)]
