"""Shared fixtures: SQLite-backed stores and environment for app tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ragchat.configs.system import DatabaseConfig
from ragchat.infra.db import MessageStore, SessionStore
from ragchat.infra.db_engine import (
    create_engine,
    create_schema,
    create_session_factory,
)

INTERNAL_KEY = "internal-secret"
GATEWAY_KEY = "external-secret"


def sqlite_uri(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'ragchat.db'}"


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_engine(DatabaseConfig(uri=sqlite_uri(tmp_path)))
    await create_schema(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def session_store(session_factory) -> SessionStore:
    return SessionStore(session_factory)


@pytest.fixture
def message_store(session_factory) -> MessageStore:
    return MessageStore(session_factory, max_page_size=50)


@pytest.fixture
def app_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Environment for building either tier's app in-process."""
    monkeypatch.setenv("RAGCHAT_SECURITY__INTERNAL_SERVICE_KEY", INTERNAL_KEY)
    monkeypatch.setenv("RAGCHAT_SECURITY__GATEWAY_API_KEY", GATEWAY_KEY)
    monkeypatch.setenv("RAGCHAT_DATABASE__URI", sqlite_uri(tmp_path))
    monkeypatch.setenv("RAGCHAT_DATABASE__CREATE_SCHEMA", "true")
    monkeypatch.setenv("RAGCHAT_LOGGING__JSON_OUTPUT", "false")
