"""Alembic migration environment for the storage tier.

The database URI comes from the application config, so
``RAGCHAT_DATABASE__URI`` and ``configs/config.yaml`` drive migrations
exactly as they drive the running service.  SQLite targets use batch
mode because it cannot ALTER most constraints in place.
"""

import asyncio

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from ragchat.configs.config import get_app_config
from ragchat.infra.db.models import Base

DATABASE_URI = get_app_config().database.uri


def _configure(**kwargs) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **kwargs)


def _migrate_sync(connection: Connection) -> None:
    _configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_async_engine(DATABASE_URI)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _configure(
        url=DATABASE_URI,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_migrate_online())
