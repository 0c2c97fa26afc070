"""Session lifecycle.

Every operation opens its own transaction through the injected
``async_sessionmaker``.  ``delete`` removes the session's messages and
the session itself in one transaction, after locking the session row,
so a concurrent ``MessageStore.append`` either commits before the
delete starts or sees the session gone.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ragchat.core.errors import NotFound
from ragchat.infra.id_utils import SESSION_ID_PREFIX, generate_id

from .common import advance, check_text, raise_for_errors, utcnow
from .models import SESSION_TITLE_MAX_LENGTH, ChatMessage, ChatSession

logger = logging.getLogger(__name__)

SESSION_RESOURCE = "Chat session"


def session_not_found(session_id: str) -> NotFound:
    logger.warning("Chat session [%s] not found", session_id)
    return NotFound(SESSION_RESOURCE, session_id)


async def load_session(
    db: AsyncSession, session_id: str, *, lock: bool = False
) -> ChatSession:
    """Fetch a session row inside *db*'s transaction or raise ``NotFound``."""
    stmt = select(ChatSession).where(ChatSession.session_id == session_id)
    if lock:
        stmt = stmt.with_for_update()
    row = await db.scalar(stmt)
    if row is None:
        raise session_not_found(session_id)
    return row


class SessionStore:
    """Create, mutate, delete and list chat sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sf = session_factory

    async def create(self, owner_id: str, title: str) -> ChatSession:
        errors: dict[str, str] = {}
        check_text(errors, "userId", owner_id)
        check_text(errors, "title", title, max_length=SESSION_TITLE_MAX_LENGTH)
        raise_for_errors(errors)

        now = utcnow()
        row = ChatSession(
            session_id=generate_id(SESSION_ID_PREFIX),
            user_id=owner_id,
            title=title,
            favorite=False,
            created_at=now,
            updated_at=now,
        )
        async with self._sf.begin() as db:
            db.add(row)
        logger.info("Created session [%s] for user [%s]", row.session_id, owner_id)
        return row

    async def rename(self, session_id: str, title: str) -> ChatSession:
        """Replace the title.  Refreshes ``updated_at`` like any other mutation."""
        errors: dict[str, str] = {}
        check_text(errors, "title", title, max_length=SESSION_TITLE_MAX_LENGTH)
        raise_for_errors(errors)

        async with self._sf.begin() as db:
            row = await load_session(db, session_id, lock=True)
            row.title = title
            row.updated_at = advance(row.updated_at)
        logger.info("Renamed session [%s]", session_id)
        return row

    async def toggle_favorite(self, session_id: str, favorite: bool) -> ChatSession:
        async with self._sf.begin() as db:
            row = await load_session(db, session_id, lock=True)
            row.favorite = favorite
            row.updated_at = advance(row.updated_at)
        logger.info("Set favorite of session [%s] to %s", session_id, favorite)
        return row

    async def delete(self, session_id: str) -> None:
        """Delete the session and all of its messages atomically."""
        async with self._sf.begin() as db:
            await load_session(db, session_id, lock=True)
            result = await db.execute(
                delete(ChatMessage).where(ChatMessage.session_id == session_id)
            )
            await db.execute(
                delete(ChatSession).where(ChatSession.session_id == session_id)
            )
        logger.info(
            "Deleted session [%s] and %d messages", session_id, result.rowcount
        )

    async def get(self, session_id: str) -> ChatSession:
        async with self._sf() as db:
            return await load_session(db, session_id)

    async def list_for_owner(self, owner_id: str) -> list[ChatSession]:
        stmt = (
            select(ChatSession)
            .where(ChatSession.user_id == owner_id)
            .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
        )
        async with self._sf() as db:
            return list(await db.scalars(stmt))

    async def list_all(self) -> list[ChatSession]:
        stmt = select(ChatSession).order_by(
            ChatSession.updated_at.desc(), ChatSession.id.desc()
        )
        async with self._sf() as db:
            return list(await db.scalars(stmt))
