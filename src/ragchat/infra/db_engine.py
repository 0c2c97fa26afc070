"""Async SQLAlchemy engine and session factory (**leaf module**).

``build_db`` is a lifespan dependency: it creates the engine +
session factory, attaches them to ``app.state``, and disposes the
engine on shutdown.  Per-request dependencies read from ``app.state``.

PostgreSQL (``asyncpg``) is the production target.  SQLite
(``aiosqlite``) is accepted for local runs and tests; foreign keys are
switched on for every SQLite connection so the message → session
reference is enforced there too.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ragchat.configs.config import AppConfig, get_app_config
from ragchat.configs.system import DatabaseConfig
from ragchat.infra.lifespan import get_app
from ragchat.infra.telemetry import instrument_sqlalchemy

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(db: DatabaseConfig) -> AsyncEngine:
    """Build an ``AsyncEngine`` for *db*, with SQLite quirks handled."""
    url = make_url(db.uri)
    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(url)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables.  Production schemas come from Alembic instead."""
    from ragchat.infra.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_db(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create engine + session factory, attach to ``app.state``."""
    engine = create_engine(config.database)
    instrument_sqlalchemy(engine)
    if config.database.create_schema:
        await create_schema(engine)
        logger.info("Database schema created")
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    yield
    await engine.dispose()


# ---------------------------------------------------------------------------
# Per-request dependencies, read from app.state
# ---------------------------------------------------------------------------


def get_session_factory(
    request: Request,
) -> async_sessionmaker[AsyncSession]:
    """Return the ``async_sessionmaker`` from ``app.state``."""
    return request.app.state.session_factory
