"""Relational persistence for chat sessions and messages."""

from .deps import get_message_store, get_session_store
from .messages import MessagePage, MessageStore
from .models import (
    MESSAGE_SENDER_MAX_LENGTH,
    SESSION_TITLE_MAX_LENGTH,
    Base,
    ChatMessage,
    ChatSession,
)
from .sessions import SessionStore

from ragchat.infra.db_engine import build_db, get_session_factory

__all__ = [
    "Base",
    "build_db",
    "ChatMessage",
    "ChatSession",
    "get_message_store",
    "get_session_factory",
    "get_session_store",
    "MESSAGE_SENDER_MAX_LENGTH",
    "MessagePage",
    "MessageStore",
    "SESSION_TITLE_MAX_LENGTH",
    "SessionStore",
]
