import logging
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.sessions.errors import InvalidEventError, WalletNotFoundError
from app.domain.sessions.pricing import to_money
from app.persistence.models.wallet import Wallet
from app.persistence.models.wallet_transaction import WalletTransaction
from app.persistence.repositories.user_repo import UserRepository
from app.persistence.repositories.wallet_repo import WalletRepository

logger = logging.getLogger(__name__)


class WalletService:
    """
    Wallet reads and manual top-ups.

    Session charges do not go through here; BillingService moves
    that money under row locks.

    Used by:
    - Wallet API
    - Admin wallets API
    - scripts/fix_missing_wallets.py
    """

    async def get_wallet(self, *, session: AsyncSession, user_id: UUID) -> Wallet:
        wallet = await WalletRepository(session).get_for_user(user_id)
        if wallet is None:
            raise WalletNotFoundError(f"No wallet for user {user_id}")
        return wallet

    async def list_transactions(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        limit: int = 50,
    ) -> List[WalletTransaction]:
        wallet = await self.get_wallet(session=session, user_id=user_id)
        return await WalletRepository(session).list_transactions(wallet.id, limit=limit)

    async def ensure_wallet(self, *, session: AsyncSession, user_id: UUID) -> Wallet:
        """
        Return the user's wallet, opening an empty one if missing.
        Caller commits.
        """
        repo = WalletRepository(session)
        wallet = await repo.get_for_user_for_update(user_id)
        if wallet is None:
            wallet = await repo.create(user_id=user_id, currency=settings.CURRENCY)
            logger.info(f"Opened wallet for user {user_id}")
        return wallet

    async def credit(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        amount,
        description: str = "Admin credit",
    ) -> Wallet:
        amount = to_money(amount)
        if amount <= Decimal("0.00"):
            raise InvalidEventError("Credit amount must be positive")

        user = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise WalletNotFoundError(f"Unknown user {user_id}")

        wallet = await self.ensure_wallet(session=session, user_id=user_id)
        await WalletRepository(session).credit(wallet, amount, description=description)
        await session.commit()

        logger.info(f"Credited {amount} to wallet of {user_id}")
        return wallet
