from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.dependencies import CurrentUser, get_current_user, get_runtime, require_astrologer
from app.api.v1.schemas import SessionCreateRequest, SessionRejectRequest, SessionResponse
from app.realtime.runtime import LiveRuntime

router = APIRouter()


@router.post("", response_model=SessionResponse, summary="Request a live session")
async def request_session(
    payload: SessionCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    """
    Ask an online astrologer for a chat or call.

    The client must hold a live connection; the astrologer is
    notified over theirs.
    """
    live = await runtime.sessions.request_session(
        user.id,
        payload.astrologer_id,
        kind=payload.kind,
        intake=payload.intake,
    )
    return live.summary()


@router.get("/pending", response_model=List[SessionResponse], summary="Astrologer inbox")
async def list_pending(
    user: CurrentUser = Depends(require_astrologer),
    runtime: LiveRuntime = Depends(get_runtime),
):
    sessions = await runtime.sessions.list_open_for_astrologer(user.id)
    return [live.summary() for live in sessions]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    live = await runtime.sessions.get_session(session_id, user.id, is_admin=user.is_admin)
    return live.summary()


@router.post("/{session_id}/accept", response_model=SessionResponse)
async def accept_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    live = await runtime.sessions.accept_session(session_id, user.id)
    return live.summary()


@router.post("/{session_id}/reject", response_model=SessionResponse)
async def reject_session(
    session_id: UUID,
    payload: SessionRejectRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    live = await runtime.sessions.reject_session(
        session_id,
        user.id,
        reason=payload.reason if payload else None,
    )
    return live.summary()


@router.post("/{session_id}/end", response_model=SessionResponse)
async def end_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    """
    End an active session. Repeating the call returns the same summary.
    """
    return await runtime.sessions.end_session(session_id, user.id)


@router.get("/{session_id}/messages", summary="Chat transcript")
async def list_messages(
    session_id: UUID,
    limit: int = 200,
    user: CurrentUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    return await runtime.chat.history(
        session_id,
        user.id,
        is_admin=user.is_admin,
        limit=limit,
    )
