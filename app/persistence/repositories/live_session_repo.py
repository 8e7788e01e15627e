from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.sessions.states import OPEN_STATUSES, SessionStatus
from app.persistence.repositories.base import BaseRepository
from app.persistence.models.live_session import LiveSession


class LiveSessionRepository(BaseRepository[LiveSession]):
    """
    Repository for LiveSession model.

    Handles persistence for the session lifecycle and billing progress.
    """

    model = LiveSession

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create(self, **fields) -> LiveSession:
        live_session = LiveSession(**fields)
        return await self.add(live_session)

    async def find_open_for_user(self, user_id) -> LiveSession | None:
        """
        The requested or active session a user takes part in, if any.
        """
        stmt = (
            select(LiveSession)
            .where(
                or_(
                    LiveSession.client_id == user_id,
                    LiveSession.astrologer_id == user_id,
                ),
                LiveSession.status.in_(OPEN_STATUSES),
            )
            .order_by(LiveSession.requested_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_open_for_astrologer(self, astrologer_id) -> list[LiveSession]:
        stmt = (
            select(LiveSession)
            .where(
                LiveSession.astrologer_id == astrologer_id,
                LiveSession.status.in_(OPEN_STATUSES),
            )
            .order_by(LiveSession.requested_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_status(self, status: SessionStatus) -> list[LiveSession]:
        stmt = (
            select(LiveSession)
            .where(LiveSession.status == status.value)
            .order_by(LiveSession.requested_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_user(
        self,
        user_id,
        limit: int = 50,
    ) -> list[LiveSession]:
        """
        Session history for a user (either side).
        """
        stmt = (
            select(LiveSession)
            .where(
                or_(
                    LiveSession.client_id == user_id,
                    LiveSession.astrologer_id == user_id,
                )
            )
            .order_by(LiveSession.requested_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
