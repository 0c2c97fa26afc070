"""Per-request store factories for the storage-tier routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ragchat.configs.config import get_pagination_config
from ragchat.configs.system import PaginationConfig
from ragchat.infra.db_engine import get_session_factory

from .messages import MessageStore
from .sessions import SessionStore


def get_session_store(
    sf: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> SessionStore:
    return SessionStore(sf)


def get_message_store(
    sf: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    pagination: Annotated[PaginationConfig, Depends(get_pagination_config)],
) -> MessageStore:
    return MessageStore(sf, max_page_size=pagination.max_page_size)
