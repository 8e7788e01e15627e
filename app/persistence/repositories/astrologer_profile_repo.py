from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.repositories.base import BaseRepository
from app.persistence.models.astrologer_profile import AstrologerProfile


class AstrologerProfileRepository(BaseRepository[AstrologerProfile]):
    """
    Repository for AstrologerProfile model.
    """

    model = AstrologerProfile

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create(self, user_id, rate_per_minute=None, **fields) -> AstrologerProfile:
        profile = AstrologerProfile(
            user_id=user_id,
            rate_per_minute=rate_per_minute,
            **fields,
        )
        return await self.add(profile)

    async def get_for_user(self, user_id) -> AstrologerProfile | None:
        stmt = select(AstrologerProfile).where(
            AstrologerProfile.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_users(self, user_ids) -> list[AstrologerProfile]:
        if not user_ids:
            return []
        stmt = select(AstrologerProfile).where(
            AstrologerProfile.user_id.in_(list(user_ids))
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_online(
        self,
        user_id,
        is_online: bool,
        at: datetime,
    ) -> None:
        """
        Update presence flags. Users without a profile are ignored.
        """
        stmt = (
            update(AstrologerProfile)
            .where(AstrologerProfile.user_id == user_id)
            .values(is_online=is_online, last_active=at)
        )
        await self.session.execute(stmt)
