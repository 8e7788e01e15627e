from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.repositories.base import BaseRepository
from app.persistence.models.wallet import Wallet
from app.persistence.models.wallet_transaction import WalletTransaction


class WalletRepository(BaseRepository[Wallet]):
    """
    Repository for Wallet and its ledger.

    Balance changes always go through `debit` / `credit` so that
    every change has a matching WalletTransaction row.
    """

    model = Wallet

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create(
        self,
        user_id,
        balance: Decimal = Decimal("0.00"),
        currency: str = "INR",
    ) -> Wallet:
        wallet = Wallet(user_id=user_id, balance=balance, currency=currency)
        return await self.add(wallet)

    async def get_for_user(self, user_id) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_user_for_update(self, user_id) -> Wallet | None:
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # ─────────────────────────────────────────────
    # Balance changes
    # ─────────────────────────────────────────────

    async def debit(
        self,
        wallet: Wallet,
        amount: Decimal,
        description: str,
        session_id=None,
    ) -> WalletTransaction:
        wallet.balance = wallet.balance - amount
        return await self._record(wallet, amount, "debit", description, session_id)

    async def credit(
        self,
        wallet: Wallet,
        amount: Decimal,
        description: str,
        session_id=None,
    ) -> WalletTransaction:
        wallet.balance = wallet.balance + amount
        return await self._record(wallet, amount, "credit", description, session_id)

    async def list_transactions(
        self,
        wallet_id,
        limit: int = 50,
    ) -> list[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_session(self, session_id) -> list[WalletTransaction]:
        stmt = select(WalletTransaction).where(
            WalletTransaction.session_id == session_id
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _record(
        self,
        wallet: Wallet,
        amount: Decimal,
        type_: str,
        description: str,
        session_id,
    ) -> WalletTransaction:
        entry = WalletTransaction(
            wallet_id=wallet.id,
            amount=amount,
            type=type_,
            description=description,
            session_id=session_id,
            balance_after=wallet.balance,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
