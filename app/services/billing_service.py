import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.sessions.clock import elapsed_seconds
from app.domain.sessions.pricing import (
    Charge,
    affordable_seconds,
    charge_between,
    minimum_balance,
)
from app.domain.sessions.schemas import TickOutcome
from app.domain.sessions.states import SessionStatus
from app.persistence.models.live_session import LiveSession
from app.persistence.models.wallet import Wallet
from app.persistence.repositories.live_session_repo import LiveSessionRepository
from app.persistence.repositories.wallet_repo import WalletRepository

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class BillingService:
    """
    Moves money for metered sessions.

    Lock order is always: session row, payer wallet, payee wallet.
    `billed_seconds` on the session row only grows, and it advances in
    the same transaction as the wallet changes, so a repeated or late
    tick can never charge the same second twice.
    """

    def __init__(
        self,
        commission_rate: float | None = None,
        low_balance_minutes: int | None = None,
    ):
        self.commission_rate = (
            settings.PLATFORM_COMMISSION_RATE
            if commission_rate is None
            else commission_rate
        )
        self.low_balance_minutes = (
            settings.MIN_BALANCE_MINUTES
            if low_balance_minutes is None
            else low_balance_minutes
        )

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    async def charge_tick(
        self,
        session: AsyncSession,
        session_id: UUID,
        now: datetime,
    ) -> TickOutcome:
        """
        Bill an active session up to `now` and commit.
        """
        live = await LiveSessionRepository(session).get_by_id_for_update(session_id)

        if live is None or live.status != SessionStatus.ACTIVE.value:
            await session.rollback()
            return TickOutcome(session_id=session_id, stopped=True)

        outcome = TickOutcome(
            session_id=live.id,
            client_id=live.client_id,
            astrologer_id=live.astrologer_id,
        )

        target = elapsed_seconds(live.accepted_at, now)
        if target <= live.billed_seconds:
            await session.rollback()
            return self._snapshot(outcome, live, None)

        wallets = WalletRepository(session)
        payer = await wallets.get_for_user_for_update(live.client_id)
        charge = self._charge(live, target)

        if not live.is_free and (payer is None or charge.amount > payer.balance):
            logger.info(
                f"Session {live.id}: balance exhausted after {live.billed_seconds}s"
            )
            await session.rollback()
            outcome.insufficient = True
            outcome.elapsed = target
            return outcome

        previous = live.billed_seconds
        await self._apply(wallets, live, payer, target, charge)
        await session.commit()

        if target // 60 > previous // 60:
            logger.info(f"Session {live.id}: {target}s, total {live.total_cost}")
        else:
            logger.debug(f"Session {live.id}: charged {charge.amount} up to {target}s")

        outcome.charged = True
        return self._snapshot(outcome, live, payer)

    async def settle(
        self,
        session: AsyncSession,
        live: LiveSession,
        now: datetime,
    ) -> Decimal:
        """
        Charge whatever the timer has not billed yet, capped at the
        payer's balance. `live` must already be locked by the caller,
        who also commits.
        """
        target = elapsed_seconds(live.accepted_at, now)
        if target <= live.billed_seconds:
            return ZERO

        wallets = WalletRepository(session)
        if live.is_free:
            await self._apply(wallets, live, None, target, Charge(ZERO, ZERO, ZERO))
            return ZERO

        payer = await wallets.get_for_user_for_update(live.client_id)
        if payer is None:
            return ZERO

        charge = self._charge(live, target)
        if charge.amount > payer.balance:
            target = affordable_seconds(
                live.rate_per_minute,
                live.billed_seconds,
                target,
                payer.balance,
            )
            if target <= live.billed_seconds:
                return ZERO
            charge = self._charge(live, target)

        await self._apply(wallets, live, payer, target, charge)
        return charge.amount

    def is_low_balance(self, live: LiveSession, balance: Decimal) -> bool:
        if live.is_free:
            return False
        return balance < minimum_balance(live.rate_per_minute, self.low_balance_minutes)

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _charge(self, live: LiveSession, target: int) -> Charge:
        if live.is_free:
            return Charge(ZERO, ZERO, ZERO)
        return charge_between(
            live.rate_per_minute,
            live.billed_seconds,
            target,
            self.commission_rate,
        )

    async def _apply(
        self,
        wallets: WalletRepository,
        live: LiveSession,
        payer: Wallet | None,
        target: int,
        charge: Charge,
    ) -> None:
        if charge.amount > 0 and payer is not None:
            payee = await wallets.get_for_user_for_update(live.astrologer_id)
            if payee is None:
                payee = await wallets.create(user_id=live.astrologer_id, currency=payer.currency)

            await wallets.debit(
                payer,
                charge.amount,
                description=f"{live.kind.capitalize()} charge - {target}s",
                session_id=live.id,
            )
            if charge.payee_amount > 0:
                await wallets.credit(
                    payee,
                    charge.payee_amount,
                    description=f"{live.kind.capitalize()} earning - {target}s",
                    session_id=live.id,
                )

        live.billed_seconds = target
        live.duration_seconds = target
        live.total_cost = live.total_cost + charge.amount
        live.astrologer_earnings = live.astrologer_earnings + charge.payee_amount
        live.platform_commission = live.platform_commission + charge.commission

    def _snapshot(
        self,
        outcome: TickOutcome,
        live: LiveSession,
        payer: Wallet | None,
    ) -> TickOutcome:
        outcome.elapsed = live.billed_seconds
        outcome.total_cost = str(live.total_cost)
        outcome.earnings = str(live.astrologer_earnings)
        if payer is not None:
            outcome.balance = str(payer.balance)
            outcome.low_balance = self.is_low_balance(live, payer.balance)
        return outcome
