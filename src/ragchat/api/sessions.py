"""Chat session endpoints."""

import logging

from fastapi import APIRouter, Query, Response, status

from .deps import CallerDep, SessionStoreDep
from .models import (
    CreateSessionRequest,
    RenameSessionRequest,
    SessionResponse,
    ToggleFavoriteRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    body: CreateSessionRequest, store: SessionStoreDep, caller: CallerDep
) -> SessionResponse:
    """Create a new, empty chat session for ``userId``."""
    row = await store.create(body.user_id, body.title)
    logger.info("audit: %s created session [%s]", caller, row.session_id)
    return SessionResponse.model_validate(row)


@router.get("")
async def list_sessions_for_owner(
    store: SessionStoreDep,
    owner: str = Query(min_length=1, description="Owner (user) ID"),
) -> list[SessionResponse]:
    """List the owner's sessions, most recently updated first."""
    rows = await store.list_for_owner(owner)
    return [SessionResponse.model_validate(r) for r in rows]


@router.get("/all")
async def list_all_sessions(store: SessionStoreDep) -> list[SessionResponse]:
    rows = await store.list_all()
    return [SessionResponse.model_validate(r) for r in rows]


@router.get("/{session_id}")
async def get_session(session_id: str, store: SessionStoreDep) -> SessionResponse:
    return SessionResponse.model_validate(await store.get(session_id))


@router.patch("/{session_id}/rename")
async def rename_session(
    session_id: str,
    body: RenameSessionRequest,
    store: SessionStoreDep,
    caller: CallerDep,
) -> SessionResponse:
    row = await store.rename(session_id, body.title)
    logger.info("audit: %s renamed session [%s]", caller, session_id)
    return SessionResponse.model_validate(row)


@router.patch("/{session_id}/favorite")
async def toggle_favorite(
    session_id: str,
    body: ToggleFavoriteRequest,
    store: SessionStoreDep,
    caller: CallerDep,
) -> SessionResponse:
    row = await store.toggle_favorite(session_id, body.favorite)
    logger.info("audit: %s set favorite on session [%s]", caller, session_id)
    return SessionResponse.model_validate(row)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str, store: SessionStoreDep, caller: CallerDep
) -> Response:
    """Delete the session together with all of its messages."""
    await store.delete(session_id)
    logger.info("audit: %s deleted session [%s]", caller, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
