"""Message lifecycle: existence-gated append and paginated ordered reads."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ragchat.core.errors import IntegrityViolation, ValidationFailure
from ragchat.infra.id_utils import MESSAGE_ID_PREFIX, generate_id

from .common import check_text, raise_for_errors, utcnow
from .models import MESSAGE_SENDER_MAX_LENGTH, ChatMessage, ChatSession
from .sessions import session_not_found

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class MessagePage:
    """One page of a session's messages, oldest first."""

    items: list[ChatMessage]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0


class MessageStore:
    """Append messages to sessions and read them back in order."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ) -> None:
        self._sf = session_factory
        self._max_page_size = max_page_size

    async def append(
        self,
        session_id: str,
        sender: str,
        content: str,
        context: str | None = None,
    ) -> ChatMessage:
        """Insert a message if, and only if, its session exists.

        The session row is share-locked for the rest of the transaction,
        so a concurrent delete waits for this insert to commit (and then
        removes it with the session).
        """
        errors: dict[str, str] = {}
        check_text(errors, "sender", sender, max_length=MESSAGE_SENDER_MAX_LENGTH)
        check_text(errors, "content", content)
        raise_for_errors(errors)

        row = ChatMessage(
            message_id=generate_id(MESSAGE_ID_PREFIX),
            session_id=session_id,
            sender=sender,
            content=content,
            context=context,
        )
        try:
            async with self._sf.begin() as db:
                exists = await db.scalar(
                    select(ChatSession.id)
                    .where(ChatSession.session_id == session_id)
                    .with_for_update(read=True)
                )
                if exists is None:
                    raise session_not_found(session_id)
                row.created_at = utcnow()
                db.add(row)
        except IntegrityError as exc:
            logger.warning(
                "Message insert for session [%s] violated a constraint: %s",
                session_id,
                exc.orig,
            )
            raise IntegrityViolation(
                "Message could not be stored for this session."
            ) from exc

        logger.info("Message [%s] added to session [%s]", row.message_id, session_id)
        return row

    async def list_for_session(
        self, session_id: str, page_index: int, page_size: int
    ) -> MessagePage:
        """Return page *page_index* (zero-based) ordered by creation time."""
        errors: dict[str, str] = {}
        if page_index < 0:
            errors["page"] = "page must be zero or greater"
        if not 1 <= page_size <= self._max_page_size:
            errors["size"] = f"size must be between 1 and {self._max_page_size}"
        if errors:
            raise ValidationFailure("Invalid pagination parameters.", details=errors)

        async with self._sf() as db:
            exists = await db.scalar(
                select(ChatSession.id).where(ChatSession.session_id == session_id)
            )
            if exists is None:
                raise session_not_found(session_id)

            total = await db.scalar(
                select(func.count())
                .select_from(ChatMessage)
                .where(ChatMessage.session_id == session_id)
            )
            items = list(
                await db.scalars(
                    select(ChatMessage)
                    .where(ChatMessage.session_id == session_id)
                    .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
                    .offset(page_index * page_size)
                    .limit(page_size)
                )
            )

        logger.debug(
            "Fetched %d of %d messages for session [%s]", len(items), total, session_id
        )
        return MessagePage(
            items=items, page=page_index, size=page_size, total_elements=total or 0
        )
