import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.domain.sessions.clock import elapsed_seconds, utcnow
from app.domain.sessions.errors import (
    InsufficientBalanceError,
    InvalidEventError,
    InvalidTransitionError,
    NotParticipantError,
    NotRegisteredError,
    PeerBusyError,
    PeerOfflineError,
    SessionError,
    SessionNotFoundError,
    WalletNotFoundError,
)
from app.domain.sessions.pricing import minimum_balance
from app.domain.sessions.schemas import IntakeDetails, TickOutcome
from app.domain.sessions.states import (
    OPEN_STATUSES,
    EndReason,
    RejectReason,
    SessionKind,
    SessionStatus,
    USER_REJECT_REASONS,
    ensure_transition,
)
from app.persistence.models.live_session import LiveSession
from app.persistence.repositories.live_session_repo import LiveSessionRepository
from app.persistence.repositories.user_repo import UserRepository
from app.persistence.repositories.wallet_repo import WalletRepository
from app.realtime.presence import PresenceRegistry
from app.services.billing_service import BillingService
from app.services.config_service import ConfigService
from app.services.timers import BillingScheduler, TaskRegistry

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def emit_to_user(self, user_id, event: str, data: Any = None) -> bool: ...


class SessionService:
    """
    Lifecycle of live sessions: request, accept, reject, end.

    Every state change for a session runs under that session's
    asyncio.Lock, which the billing timer shares, so a tick and an
    end never interleave inside this process. Row locks taken by
    BillingService serialize the money movement across processes.

    Events are pushed through the notifier after the database commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        registry: PresenceRegistry,
        billing: BillingService | None = None,
        config: ConfigService | None = None,
        clock: Callable[[], datetime] = utcnow,
        chat_interval: float | None = None,
        call_interval: float | None = None,
        request_timeout: float | None = None,
        reconnect_grace: float | None = None,
        min_balance_minutes: int | None = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.registry = registry
        self.billing = billing or BillingService()
        self.config = config or ConfigService()
        self.clock = clock

        self.chat_interval = chat_interval or settings.CHAT_BILLING_INTERVAL_SECONDS
        self.call_interval = call_interval or settings.CALL_BILLING_INTERVAL_SECONDS
        self.request_timeout = request_timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.reconnect_grace = reconnect_grace or settings.RECONNECT_GRACE_SECONDS
        self.min_balance_minutes = min_balance_minutes or settings.MIN_BALANCE_MINUTES

        self.scheduler = BillingScheduler(self.run_billing_tick)
        self._request_timers = TaskRegistry("request-timeout")
        self._grace_timers = TaskRegistry("reconnect-grace")
        self._locks: Dict[UUID, asyncio.Lock] = {}
        self._request_lock = asyncio.Lock()
        self._low_balance_sent: set = set()

    # ─────────────────────────────────────────────
    # Request
    # ─────────────────────────────────────────────

    async def request_session(
        self,
        client_id: UUID,
        astrologer_id: UUID,
        kind: SessionKind = SessionKind.CHAT,
        intake: IntakeDetails | None = None,
    ) -> LiveSession:
        """
        Open a session request from a client to an online astrologer.
        """
        if client_id == astrologer_id:
            raise InvalidEventError("Cannot open a session with yourself")
        if not self.registry.is_online(client_id):
            raise NotRegisteredError("Connect to the live channel before requesting")
        if not self.registry.is_online(astrologer_id):
            raise PeerOfflineError("Astrologer is offline")

        # One request at a time, so two clients cannot both pass the busy check
        async with self._request_lock:
            async with self.session_factory() as db:
                users = {
                    user.id: user
                    for user in await UserRepository(db).list_by_ids(
                        [client_id, astrologer_id]
                    )
                }
                client = users.get(client_id)
                astrologer = users.get(astrologer_id)

                if client is None or not client.is_active:
                    raise InvalidEventError("Unknown client")
                if (
                    astrologer is None
                    or not astrologer.is_active
                    or astrologer.role != "astrologer"
                ):
                    raise InvalidEventError("Unknown astrologer")

                repo = LiveSessionRepository(db)
                if await repo.find_open_for_user(client_id):
                    raise PeerBusyError("You already have an open session")
                if await repo.find_open_for_user(astrologer_id):
                    raise PeerBusyError("Astrologer is busy")

                rate = await self.config.rate_for(
                    session=db,
                    astrologer_id=astrologer_id,
                    kind=kind,
                )
                is_free = client.is_admin or await self.config.test_mode(session=db)
                if not is_free:
                    await self._check_balance(db, client_id, rate)

                live = await repo.create(
                    kind=kind.value,
                    client_id=client_id,
                    astrologer_id=astrologer_id,
                    status=SessionStatus.REQUESTED.value,
                    requested_at=self.clock(),
                    rate_per_minute=rate,
                    is_free=is_free,
                    intake_details=(
                        intake.model_dump(exclude_none=True) if intake else None
                    ),
                )
                await db.commit()
                client_name = client.name

        logger.info(
            f"Session {live.id} requested: {kind.value} "
            f"{client_id} -> {astrologer_id} at {rate}/min"
        )

        self._request_timers.start(live.id, self._expire_request(live.id))

        delivered = await self.notifier.emit_to_user(
            astrologer_id,
            "session:incoming",
            {
                **live.summary(),
                "client_name": client_name,
                "intake": live.intake_details,
            },
        )
        if not delivered:
            await self._reject(live.id, None, RejectReason.OFFLINE)
            raise PeerOfflineError("Astrologer is offline")

        await self.notifier.emit_to_user(client_id, "session:requested", live.summary())
        return live

    # ─────────────────────────────────────────────
    # Accept / Reject
    # ─────────────────────────────────────────────

    async def accept_session(self, session_id: UUID, astrologer_id: UUID) -> LiveSession:
        async with self._lock_for(session_id):
            short = False
            async with self.session_factory() as db:
                live = await self._load_for_update(db, session_id)
                if live.astrologer_id != astrologer_id:
                    raise NotParticipantError("Only the astrologer can accept")
                ensure_transition(live.status, SessionStatus.ACTIVE)

                now = self.clock()
                if not live.is_free:
                    try:
                        await self._check_balance(db, live.client_id, live.rate_per_minute)
                    except (InsufficientBalanceError, WalletNotFoundError):
                        live.status = SessionStatus.REJECTED.value
                        live.end_reason = RejectReason.INSUFFICIENT_BALANCE.value
                        live.ended_at = now
                        short = True

                if not short:
                    live.status = SessionStatus.ACTIVE.value
                    live.accepted_at = now
                await db.commit()

            self._request_timers.cancel(session_id)

            if short:
                logger.info(f"Session {session_id} rejected on accept: balance too low")
                self._forget(session_id)
                await self._notify_both(
                    live,
                    "session:rejected",
                    {
                        "session_id": live.id,
                        "reason": RejectReason.INSUFFICIENT_BALANCE.value,
                        "by": None,
                    },
                )
                raise InsufficientBalanceError("Client balance is too low to start")

            interval = (
                self.call_interval
                if SessionKind(live.kind).is_call
                else self.chat_interval
            )
            self.scheduler.start(live.id, interval)
            logger.info(f"Session {live.id} accepted by {astrologer_id}")

            await self._notify_both(
                live,
                "session:accepted",
                {**live.summary(), "billing_interval": interval},
            )
            return live

    async def reject_session(
        self,
        session_id: UUID,
        user_id: UUID,
        reason: RejectReason | None = None,
    ) -> LiveSession:
        """
        Astrologer declines, or client cancels, a pending request.
        """
        async with self.session_factory() as db:
            live = await LiveSessionRepository(db).get_by_id(session_id)
        if live is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if live.peer_of(user_id) is None:
            raise NotParticipantError("Not a participant of this session")

        if reason is None:
            reason = (
                RejectReason.DECLINED
                if user_id == live.astrologer_id
                else RejectReason.CANCELLED
            )
        elif RejectReason(reason) not in USER_REJECT_REASONS:
            raise InvalidEventError(f"Reason {RejectReason(reason).value} is set by the server")
        return await self._reject(session_id, user_id, reason)

    async def _reject(
        self,
        session_id: UUID,
        user_id: UUID | None,
        reason: RejectReason,
    ) -> LiveSession:
        async with self._lock_for(session_id):
            async with self.session_factory() as db:
                live = await self._load_for_update(db, session_id)
                ensure_transition(live.status, SessionStatus.REJECTED)

                live.status = SessionStatus.REJECTED.value
                live.end_reason = reason.value
                live.ended_at = self.clock()
                live.ended_by = user_id
                await db.commit()

            self._request_timers.cancel(session_id)
            self._forget(session_id)

        logger.info(f"Session {session_id} rejected ({reason.value})")
        await self._notify_both(
            live,
            "session:rejected",
            {"session_id": live.id, "reason": reason.value, "by": user_id},
        )
        return live

    # ─────────────────────────────────────────────
    # End
    # ─────────────────────────────────────────────

    async def end_session(
        self,
        session_id: UUID,
        user_id: UUID | None = None,
        reason: EndReason = EndReason.COMPLETED,
    ) -> Dict[str, Any]:
        """
        End an active session and settle what the timer has not billed.

        `user_id` is None when the system ends it. Ending an ended
        session returns the stored summary and notifies nobody.
        """
        async with self._lock_for(session_id):
            return await self._end_locked(session_id, user_id, reason)

    async def _end_locked(
        self,
        session_id: UUID,
        user_id: UUID | None,
        reason: EndReason,
    ) -> Dict[str, Any]:
        async with self.session_factory() as db:
            live = await self._load_for_update(db, session_id)
            if user_id is not None and live.peer_of(user_id) is None:
                raise NotParticipantError("Not a participant of this session")
            if live.status == SessionStatus.ENDED.value:
                return live.summary()
            ensure_transition(live.status, SessionStatus.ENDED)

            now = self.clock()
            settled = await self.billing.settle(db, live, now)

            live.status = SessionStatus.ENDED.value
            live.ended_at = now
            live.end_reason = reason.value
            live.ended_by = user_id
            live.duration_seconds = elapsed_seconds(live.accepted_at, now)

            payer = await WalletRepository(db).get_for_user(live.client_id)
            balance = payer.balance if payer is not None else None
            await db.commit()

        self.scheduler.stop(session_id)
        self._forget(session_id)

        summary = live.summary()
        logger.info(
            f"Session {live.id} ended ({reason.value}) after "
            f"{live.duration_seconds}s, total {live.total_cost}, settled {settled}"
        )

        astrologer_reason = (
            "client_insufficient_balance"
            if reason is EndReason.INSUFFICIENT_BALANCE
            else reason.value
        )
        await self.notifier.emit_to_user(
            live.client_id,
            "session:ended",
            {**summary, "reason": reason.value, "balance": balance},
        )
        await self.notifier.emit_to_user(
            live.astrologer_id,
            "session:ended",
            {
                **summary,
                "reason": astrologer_reason,
                "earnings": live.astrologer_earnings,
            },
        )
        return summary

    # ─────────────────────────────────────────────
    # Billing timer
    # ─────────────────────────────────────────────

    async def run_billing_tick(self, session_id: UUID) -> bool:
        """
        One timer tick. Returns False once the timer should stop.
        """
        async with self._lock_for(session_id):
            try:
                async with self.session_factory() as db:
                    outcome = await self.billing.charge_tick(db, session_id, self.clock())
            except Exception:
                logger.exception(f"Billing tick failed for session {session_id}")
                try:
                    await self._end_locked(session_id, None, EndReason.BILLING_ERROR)
                except Exception:
                    logger.exception(f"Could not end session {session_id} after billing failure")
                return False

            if outcome.stopped:
                return False

            if outcome.insufficient:
                await self._end_locked(session_id, None, EndReason.INSUFFICIENT_BALANCE)
                return False

            if outcome.charged:
                await self._publish_tick(outcome)
            return True

    async def _publish_tick(self, outcome: TickOutcome) -> None:
        await self.notifier.emit_to_user(
            outcome.client_id,
            "billing:update",
            {
                "session_id": outcome.session_id,
                "elapsed": outcome.elapsed,
                "cost": outcome.total_cost,
                "balance": outcome.balance,
            },
        )
        await self.notifier.emit_to_user(
            outcome.astrologer_id,
            "billing:update",
            {
                "session_id": outcome.session_id,
                "elapsed": outcome.elapsed,
                "earnings": outcome.earnings,
            },
        )

        if outcome.low_balance and outcome.session_id not in self._low_balance_sent:
            self._low_balance_sent.add(outcome.session_id)
            await self.notifier.emit_to_user(
                outcome.client_id,
                "wallet:low_balance",
                {"session_id": outcome.session_id, "balance": outcome.balance},
            )

    # ─────────────────────────────────────────────
    # Connection loss
    # ─────────────────────────────────────────────

    async def handle_disconnect(self, user_id: UUID) -> Optional[LiveSession]:
        """
        The user's last connection closed. Arm the reconnect grace timer
        if they take part in an open session.
        """
        async with self.session_factory() as db:
            live = await LiveSessionRepository(db).find_open_for_user(user_id)
        if live is None:
            return None

        logger.info(f"User {user_id} dropped from session {live.id}")
        self._grace_timers.start(str(user_id), self._expire_grace(user_id, live.id))

        await self.notifier.emit_to_user(
            live.peer_of(user_id),
            "session:peer_disconnected",
            {
                "session_id": live.id,
                "user_id": user_id,
                "grace_seconds": self.reconnect_grace,
            },
        )
        return live

    async def handle_reconnect(self, user_id: UUID) -> Optional[LiveSession]:
        """
        The user registered a connection. Cancel a pending grace timer
        and resend the state of their open session.
        """
        returned = self._grace_timers.cancel(str(user_id))

        async with self.session_factory() as db:
            live = await LiveSessionRepository(db).find_open_for_user(user_id)
        if live is None:
            return None

        peer_id = live.peer_of(user_id)
        await self.notifier.emit_to_user(
            user_id,
            "session:resume",
            {**live.summary(), "peer_online": self.registry.is_online(peer_id)},
        )
        if returned:
            logger.info(f"User {user_id} returned to session {live.id}")
            await self.notifier.emit_to_user(
                peer_id,
                "session:peer_reconnected",
                {"session_id": live.id, "user_id": user_id},
            )
        return live

    # ─────────────────────────────────────────────
    # Startup / shutdown
    # ─────────────────────────────────────────────

    async def recover_open_sessions(self) -> int:
        """
        Close sessions a previous process left open.

        Active sessions keep what was billed up to their last tick;
        the downtime is not charged.
        """
        async with self.session_factory() as db:
            repo = LiveSessionRepository(db)
            now = self.clock()

            active = await repo.list_by_status(SessionStatus.ACTIVE)
            for live in active:
                live.status = SessionStatus.ENDED.value
                live.ended_at = now
                live.end_reason = EndReason.SERVER_RESTART.value
                live.duration_seconds = live.billed_seconds

            requested = await repo.list_by_status(SessionStatus.REQUESTED)
            for live in requested:
                live.status = SessionStatus.REJECTED.value
                live.ended_at = now
                live.end_reason = RejectReason.SERVER_RESTART.value

            await db.commit()

        count = len(active) + len(requested)
        if count:
            logger.warning(
                f"Recovered {len(active)} active and {len(requested)} "
                f"requested sessions after restart"
            )
        return count

    async def shutdown(self) -> None:
        await self.scheduler.stop_all()
        await self._request_timers.cancel_all()
        await self._grace_timers.cancel_all()

    # ─────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────

    async def get_session(
        self,
        session_id: UUID,
        user_id: UUID | None = None,
        is_admin: bool = False,
    ) -> LiveSession:
        async with self.session_factory() as db:
            live = await LiveSessionRepository(db).get_by_id(session_id)
        if live is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if not is_admin and live.peer_of(user_id) is None:
            raise NotParticipantError("Not a participant of this session")
        return live

    async def list_open_for_astrologer(self, astrologer_id: UUID) -> List[LiveSession]:
        async with self.session_factory() as db:
            return await LiveSessionRepository(db).list_open_for_astrologer(astrologer_id)

    async def list_active(self) -> List[LiveSession]:
        async with self.session_factory() as db:
            return await LiveSessionRepository(db).list_by_status(SessionStatus.ACTIVE)

    async def peer_for_signal(
        self,
        session_id: UUID,
        user_id: UUID,
    ) -> Tuple[LiveSession, UUID]:
        """
        The other participant of an open session the sender belongs to.
        """
        live = await self.get_session(session_id, user_id)
        if live.status not in OPEN_STATUSES:
            raise InvalidTransitionError("Session is not open")
        return live, live.peer_of(user_id)

    async def require_active_participant(
        self,
        session_id: UUID,
        user_id: UUID,
    ) -> LiveSession:
        live = await self.get_session(session_id, user_id)
        if live.status != SessionStatus.ACTIVE.value:
            raise InvalidTransitionError("Session is not active")
        return live

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _lock_for(self, session_id: UUID) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _forget(self, session_id: UUID) -> None:
        self._locks.pop(session_id, None)
        self._low_balance_sent.discard(session_id)

    async def _load_for_update(self, db: AsyncSession, session_id: UUID) -> LiveSession:
        live = await LiveSessionRepository(db).get_by_id_for_update(session_id)
        if live is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return live

    async def _check_balance(self, db: AsyncSession, client_id: UUID, rate) -> None:
        wallet = await WalletRepository(db).get_for_user(client_id)
        if wallet is None:
            raise WalletNotFoundError("Client has no wallet")
        needed = minimum_balance(rate, self.min_balance_minutes)
        if wallet.balance < needed:
            raise InsufficientBalanceError(f"A balance of at least {needed} is required")

    async def _notify_both(self, live: LiveSession, event: str, data: dict) -> None:
        await self.notifier.emit_to_user(live.client_id, event, data)
        await self.notifier.emit_to_user(live.astrologer_id, event, data)

    async def _expire_request(self, session_id: UUID) -> None:
        await asyncio.sleep(self.request_timeout)
        try:
            await self._reject(session_id, None, RejectReason.TIMEOUT)
        except SessionError as e:
            logger.debug(f"Request timeout for {session_id} skipped: {e}")
        except Exception:
            logger.exception(f"Request timeout handling failed for {session_id}")

    async def _expire_grace(self, user_id: UUID, session_id: UUID) -> None:
        await asyncio.sleep(self.reconnect_grace)
        if self.registry.is_online(user_id):
            return

        try:
            async with self.session_factory() as db:
                live = await LiveSessionRepository(db).get_by_id(session_id)
            if live is None:
                return
            if live.status == SessionStatus.REQUESTED.value:
                await self._reject(session_id, None, RejectReason.OFFLINE)
            elif live.status == SessionStatus.ACTIVE.value:
                await self.end_session(session_id, None, EndReason.DISCONNECTED)
        except SessionError as e:
            logger.debug(f"Grace expiry for {session_id} skipped: {e}")
        except Exception:
            logger.exception(f"Grace expiry handling failed for {session_id}")
