"""SQLAlchemy ORM models for the storage tier.

Tables are managed by Alembic migrations.  The ``Base.metadata``
naming convention keeps constraint names deterministic for
``--autogenerate`` diffs.

Both tables carry an internal auto-increment ``id`` and a public,
prefixed string ID.  The public ID is what callers see; the internal
``id`` breaks ties between rows created within the same clock tick so
that ordered reads are total.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    false,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

SESSION_TITLE_MAX_LENGTH = 100
MESSAGE_SENDER_MAX_LENGTH = 255
PUBLIC_ID_MAX_LENGTH = 64

# SQLite only auto-increments ``INTEGER PRIMARY KEY`` columns.
_PK_TYPE = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Shared declarative base with explicit naming convention."""


Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class ChatSession(Base):
    """A named conversation thread owned by a caller-supplied user id."""

    __tablename__ = "chat_sessions"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(PUBLIC_ID_MAX_LENGTH), unique=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(
        String(SESSION_TITLE_MAX_LENGTH), nullable=False
    )
    favorite: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("ix_chat_sessions_user_id_updated_at", "user_id", "updated_at"),
        Index("ix_chat_sessions_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ChatSession(session_id={self.session_id!r}, "
            f"user_id={self.user_id!r}, title={self.title!r})>"
        )


class ChatMessage(Base):
    """A single turn bound to exactly one session.

    ``context`` is an opaque caller-defined blob; it is stored and
    returned verbatim, never parsed.
    """

    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(
        String(PUBLIC_ID_MAX_LENGTH), unique=True, nullable=False
    )
    session_id: Mapped[str] = mapped_column(
        String(PUBLIC_ID_MAX_LENGTH),
        ForeignKey("chat_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
    )
    sender: Mapped[str] = mapped_column(
        String(MESSAGE_SENDER_MAX_LENGTH), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index(
            "ix_chat_messages_session_id_created_at",
            "session_id",
            "created_at",
            "id",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ChatMessage(message_id={self.message_id!r}, "
            f"session_id={self.session_id!r}, sender={self.sender!r})>"
        )
