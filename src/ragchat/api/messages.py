"""Message endpoints nested under a session."""

import logging

from fastapi import APIRouter, Query, status

from .deps import CallerDep, MessageStoreDep, PaginationConfigDep
from .models import MessagePageResponse, MessageRequest, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions/{session_id}/messages", tags=["messages"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_message(
    session_id: str,
    body: MessageRequest,
    store: MessageStoreDep,
    caller: CallerDep,
) -> MessageResponse:
    row = await store.append(session_id, body.sender, body.content, body.context)
    logger.info("audit: %s added message [%s]", caller, row.message_id)
    return MessageResponse.model_validate(row)


@router.get("")
async def list_messages(
    session_id: str,
    store: MessageStoreDep,
    pagination: PaginationConfigDep,
    page: int = Query(default=0, description="Page number (0-indexed)"),
    size: int | None = Query(default=None, description="Number of messages per page"),
) -> MessagePageResponse:
    """Messages of the session, oldest first."""
    result = await store.list_for_session(
        session_id, page, size if size is not None else pagination.default_page_size
    )
    return MessagePageResponse.from_page(result)
