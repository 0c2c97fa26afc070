"""Pydantic request/response models for the storage-tier API."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ragchat.infra.db import (
    MESSAGE_SENDER_MAX_LENGTH,
    SESSION_TITLE_MAX_LENGTH,
    MessagePage,
)


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CreateSessionRequest(BaseModel):
    """Body of ``POST /sessions``."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1, description="Owner reference")
    title: str = Field(min_length=1, max_length=SESSION_TITLE_MAX_LENGTH)


class RenameSessionRequest(BaseModel):
    title: str = Field(min_length=1, max_length=SESSION_TITLE_MAX_LENGTH)


class ToggleFavoriteRequest(BaseModel):
    favorite: bool = Field(description="New favorite flag")


class MessageRequest(BaseModel):
    """Body of ``POST /sessions/{id}/messages``."""

    sender: str = Field(min_length=1, max_length=MESSAGE_SENDER_MAX_LENGTH)
    content: str = Field(min_length=1)
    context: str | None = Field(
        default=None, description="Opaque caller-defined payload, stored verbatim"
    )


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(validation_alias="session_id")
    user_id: str = Field(serialization_alias="userId")
    title: str
    favorite: bool
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _utc(value)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(validation_alias="message_id")
    session_id: str = Field(serialization_alias="sessionId")
    sender: str
    content: str
    context: str | None = None
    created_at: datetime = Field(serialization_alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _utc(value)


class MessagePageResponse(BaseModel):
    items: list[MessageResponse]
    page: int
    size: int
    total_elements: int = Field(serialization_alias="totalElements")
    total_pages: int = Field(serialization_alias="totalPages")

    @classmethod
    def from_page(cls, page: MessagePage) -> "MessagePageResponse":
        return cls(
            items=[MessageResponse.model_validate(m) for m in page.items],
            page=page.page,
            size=page.size,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
        )
