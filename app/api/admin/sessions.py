from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.dependencies import get_runtime, require_admin
from app.api.v1.schemas import SessionResponse
from app.domain.sessions.states import EndReason
from app.realtime.runtime import LiveRuntime


router = APIRouter()


@router.get(
    "/active",
    response_model=List[SessionResponse],
    summary="Sessions currently being billed",
)
async def list_active_sessions(
    runtime: LiveRuntime = Depends(get_runtime),
):
    sessions = await runtime.sessions.list_active()
    return [live.summary() for live in sessions]


@router.post(
    "/{session_id}/end",
    response_model=SessionResponse,
    summary="Force-end a session",
)
async def end_session(
    session_id: UUID,
    runtime: LiveRuntime = Depends(get_runtime),
    admin=Depends(require_admin),
):
    """
    End a session on behalf of the platform. Both participants
    are notified with reason `admin`.
    """
    return await runtime.sessions.end_session(
        session_id,
        None,
        reason=EndReason.ADMIN,
    )
