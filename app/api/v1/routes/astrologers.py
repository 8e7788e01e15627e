from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_runtime
from app.api.v1.schemas import OnlineAstrologer
from app.persistence.db import get_db_session
from app.persistence.repositories.astrologer_profile_repo import AstrologerProfileRepository
from app.persistence.repositories.live_session_repo import LiveSessionRepository
from app.persistence.repositories.user_repo import UserRepository
from app.realtime.runtime import LiveRuntime

router = APIRouter()


@router.get("/online", response_model=List[OnlineAstrologer], summary="Astrologers online now")
async def list_online_astrologers(
    session: AsyncSession = Depends(get_db_session),
    runtime: LiveRuntime = Depends(get_runtime),
):
    """
    Astrologers with a live connection in this process, with their
    profile and whether they are in a session.
    """
    ids = [UUID(user_id) for user_id in runtime.registry.online_user_ids()]
    users = [
        user for user in await UserRepository(session).list_by_ids(ids)
        if user.role == "astrologer" and user.is_active
    ]
    profiles = {
        profile.user_id: profile
        for profile in await AstrologerProfileRepository(session).list_for_users(
            [user.id for user in users]
        )
    }
    sessions = LiveSessionRepository(session)

    result = []
    for user in users:
        profile = profiles.get(user.id)
        result.append({
            "user_id": user.id,
            "name": user.name,
            "rate_per_minute": profile.rate_per_minute if profile else None,
            "languages": (profile.languages or []) if profile else [],
            "specialties": (profile.specialties or []) if profile else [],
            "experience_years": (profile.experience_years or 0) if profile else 0,
            "busy": await sessions.find_open_for_user(user.id) is not None,
        })
    return result
