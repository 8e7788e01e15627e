from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.db import get_db_session
from app.persistence.repositories.user_repo import UserRepository
from app.realtime.runtime import LiveRuntime
from app.security.tokens import TokenError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser:
    """
    Lightweight user context injected into APIs.
    """

    def __init__(self, id: UUID, role: str, is_admin: bool):
        self.id = id
        self.role = role
        self.is_admin = is_admin


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    """
    Resolve the user from the bearer token.
    """

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    try:
        user_id = decode_access_token(credentials.credentials)
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )

    repo = UserRepository(session)
    user = await repo.get_by_id(user_id)

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    return CurrentUser(
        id=user.id,
        role=user.role,
        is_admin=user.is_admin,
    )


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    Ensure the current user is an admin.
    """

    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    return user


async def require_astrologer(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if user.role != "astrologer":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Astrologer access required",
        )

    return user


def get_runtime(request: Request) -> LiveRuntime:
    """
    The live runtime created in the app lifespan.
    """
    return request.app.state.live
