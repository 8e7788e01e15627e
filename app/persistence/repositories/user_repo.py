from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.repositories.base import BaseRepository
from app.persistence.models.user import User


class UserRepository(BaseRepository[User]):
    """
    Repository for User model.
    """

    model = User

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create(
        self,
        name: str,
        role: str = "client",
        email: str | None = None,
        phone: str | None = None,
    ) -> User:
        user = User(name=name, role=role, email=email, phone=phone)
        return await self.add(user)

    async def list_by_ids(self, ids) -> list[User]:
        if not ids:
            return []
        stmt = select(User).where(User.id.in_(list(ids)))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_without_wallet(self) -> list[User]:
        """
        Users that never had a wallet opened (maintenance script).
        """
        from app.persistence.models.wallet import Wallet

        stmt = (
            select(User)
            .outerjoin(Wallet, Wallet.user_id == User.id)
            .where(Wallet.id.is_(None))
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
