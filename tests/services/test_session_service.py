import asyncio
import unittest
from decimal import Decimal

from app.domain.sessions.errors import (
    InsufficientBalanceError,
    InvalidEventError,
    InvalidTransitionError,
    NotParticipantError,
    NotRegisteredError,
    PeerBusyError,
    PeerOfflineError,
    WalletNotFoundError,
)
from app.domain.sessions.schemas import IntakeDetails
from app.domain.sessions.states import RejectReason, SessionKind
from app.persistence.repositories.wallet_repo import WalletRepository
from app.realtime.hub import LiveHub
from app.realtime.presence import PresenceRegistry
from app.services.session_service import SessionService
from support import (
    FakeConnection,
    FrozenClock,
    balance_of,
    load_session,
    make_database,
    seed_session,
    seed_user,
)


class SessionServiceTestCase(unittest.IsolatedAsyncioTestCase):

    timer_options = {}

    async def asyncSetUp(self):
        self.engine, self.factory = await make_database()
        self.clock = FrozenClock()
        self.registry = PresenceRegistry()
        self.hub = LiveHub(self.registry)

        options = {
            "chat_interval": 3600,
            "call_interval": 3600,
            "request_timeout": 3600,
            "reconnect_grace": 3600,
        }
        options.update(self.timer_options)
        self.service = SessionService(
            self.factory,
            notifier=self.hub,
            registry=self.registry,
            clock=self.clock,
            **options,
        )

        self.client_id = await seed_user(self.factory, "Client", balance="100.00")
        self.astrologer_id = await seed_user(
            self.factory, "Astrologer", role="astrologer", balance="0.00", rate="10.00"
        )
        self.client = self.connect(self.client_id)
        self.astrologer = self.connect(self.astrologer_id)

    async def asyncTearDown(self):
        await self.service.shutdown()
        await self.engine.dispose()

    def connect(self, user_id) -> FakeConnection:
        conn = FakeConnection(user_id)
        self.registry.register(str(user_id), conn)
        return conn

    async def start_session(self, kind=SessionKind.CHAT):
        live = await self.service.request_session(self.client_id, self.astrologer_id, kind=kind)
        await self.service.accept_session(live.id, self.astrologer_id)
        return live.id


class TestRequest(SessionServiceTestCase):

    async def test_request_notifies_astrologer(self):
        intake = IntakeDetails(name="Asha", place_of_birth="Madurai")
        live = await self.service.request_session(
            self.client_id, self.astrologer_id, intake=intake
        )

        self.assertEqual(live.status, "requested")
        self.assertEqual(live.rate_per_minute, Decimal("10.00"))
        incoming = self.astrologer.last("session:incoming")
        self.assertEqual(incoming["session_id"], live.id)
        self.assertEqual(incoming["client_name"], "Client")
        self.assertEqual(incoming["intake"], {"name": "Asha", "place_of_birth": "Madurai"})
        self.assertEqual(self.client.last("session:requested")["session_id"], live.id)

    async def test_requester_must_be_connected(self):
        self.registry.unregister(self.client)
        with self.assertRaises(NotRegisteredError):
            await self.service.request_session(self.client_id, self.astrologer_id)

    async def test_astrologer_must_be_online(self):
        self.registry.unregister(self.astrologer)
        with self.assertRaises(PeerOfflineError):
            await self.service.request_session(self.client_id, self.astrologer_id)

    async def test_busy_astrologer(self):
        await self.service.request_session(self.client_id, self.astrologer_id)
        other_id = await seed_user(self.factory, "Other", balance="100.00")
        self.connect(other_id)

        with self.assertRaises(PeerBusyError):
            await self.service.request_session(other_id, self.astrologer_id)

    async def test_client_with_open_session_is_busy(self):
        await self.service.request_session(self.client_id, self.astrologer_id)
        second_id = await seed_user(self.factory, "Second", role="astrologer", rate="5.00")
        self.connect(second_id)

        with self.assertRaises(PeerBusyError):
            await self.service.request_session(self.client_id, second_id)

    async def test_minimum_balance_required(self):
        poor_id = await seed_user(self.factory, "Poor", balance="9.99")
        self.connect(poor_id)
        with self.assertRaises(InsufficientBalanceError):
            await self.service.request_session(poor_id, self.astrologer_id)

    async def test_wallet_required(self):
        walletless_id = await seed_user(self.factory, "NoWallet")
        self.connect(walletless_id)
        with self.assertRaises(WalletNotFoundError):
            await self.service.request_session(walletless_id, self.astrologer_id)

    async def test_admin_sessions_are_free(self):
        admin_id = await seed_user(self.factory, "Admin", role="admin")
        self.connect(admin_id)

        live = await self.service.request_session(admin_id, self.astrologer_id)

        self.assertTrue(live.is_free)

    async def test_undelivered_request_is_rejected(self):
        self.astrologer.alive = False

        with self.assertRaises(PeerOfflineError):
            await self.service.request_session(self.client_id, self.astrologer_id)

        rejected = self.client.last("session:rejected")
        self.assertEqual(rejected["reason"], RejectReason.OFFLINE.value)


class TestAcceptReject(SessionServiceTestCase):

    async def test_accept_starts_billing(self):
        session_id = await self.start_session()

        live = await load_session(self.factory, session_id)
        self.assertEqual(live.status, "active")
        self.assertIsNotNone(live.accepted_at)
        self.assertTrue(self.service.scheduler.is_running(session_id))
        self.assertEqual(self.client.last("session:accepted")["session_id"], session_id)
        self.assertEqual(self.astrologer.last("session:accepted")["session_id"], session_id)

    async def test_only_astrologer_accepts(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)
        with self.assertRaises(NotParticipantError):
            await self.service.accept_session(live.id, self.client_id)

    async def test_accept_twice(self):
        session_id = await self.start_session()
        with self.assertRaises(InvalidTransitionError):
            await self.service.accept_session(session_id, self.astrologer_id)
        self.assertEqual(self.service.scheduler.active(), [session_id])

    async def test_accept_rechecks_balance(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)
        async with self.factory() as db:
            wallet = await WalletRepository(db).get_for_user(self.client_id)
            wallet.balance = Decimal("1.00")
            await db.commit()

        with self.assertRaises(InsufficientBalanceError):
            await self.service.accept_session(live.id, self.astrologer_id)

        self.assertEqual((await load_session(self.factory, live.id)).status, "rejected")
        self.assertEqual(
            self.client.last("session:rejected")["reason"],
            RejectReason.INSUFFICIENT_BALANCE.value,
        )
        self.assertFalse(self.service.scheduler.is_running(live.id))

    async def test_astrologer_declines(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)

        await self.service.reject_session(live.id, self.astrologer_id)

        self.assertEqual((await load_session(self.factory, live.id)).status, "rejected")
        self.assertEqual(self.client.last("session:rejected")["reason"], "declined")

    async def test_client_cancels(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)

        await self.service.reject_session(live.id, self.client_id)

        self.assertEqual(self.astrologer.last("session:rejected")["reason"], "cancelled")

    async def test_cannot_reject_active_session(self):
        session_id = await self.start_session()
        with self.assertRaises(InvalidTransitionError):
            await self.service.reject_session(session_id, self.astrologer_id)

    async def test_server_reasons_are_refused(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)

        with self.assertRaises(InvalidEventError):
            await self.service.reject_session(
                live.id, self.astrologer_id, reason=RejectReason.SERVER_RESTART
            )

        self.assertEqual((await load_session(self.factory, live.id)).status, "requested")


class TestEnd(SessionServiceTestCase):

    async def test_end_settles_and_notifies(self):
        session_id = await self.start_session()
        self.clock.advance(90)

        summary = await self.service.end_session(session_id, self.client_id)

        self.assertEqual(summary["status"], "ended")
        self.assertEqual(summary["duration_seconds"], 90)
        self.assertEqual(summary["total_cost"], Decimal("15.00"))
        self.assertEqual(await balance_of(self.factory, self.client_id), Decimal("85.00"))
        self.assertEqual(await balance_of(self.factory, self.astrologer_id), Decimal("13.50"))
        self.assertFalse(self.service.scheduler.is_running(session_id))
        self.assertEqual(self.client.last("session:ended")["reason"], "completed")
        self.assertEqual(self.astrologer.last("session:ended")["reason"], "completed")

    async def test_end_is_idempotent(self):
        session_id = await self.start_session()
        self.clock.advance(30)
        first = await self.service.end_session(session_id, self.astrologer_id)
        self.clock.advance(30)

        second = await self.service.end_session(session_id, self.client_id)

        self.assertEqual(second["total_cost"], first["total_cost"])
        self.assertEqual(len(self.client.events("session:ended")), 1)
        self.assertEqual(await balance_of(self.factory, self.client_id), Decimal("95.00"))

    async def test_cannot_end_requested_session(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)
        with self.assertRaises(InvalidTransitionError):
            await self.service.end_session(live.id, self.client_id)

    async def test_outsider_cannot_end(self):
        session_id = await self.start_session()
        outsider_id = await seed_user(self.factory, "Outsider")
        with self.assertRaises(NotParticipantError):
            await self.service.end_session(session_id, outsider_id)


class TestBillingTick(SessionServiceTestCase):

    async def test_tick_publishes_updates(self):
        session_id = await self.start_session()
        self.clock.advance(6)

        keep_going = await self.service.run_billing_tick(session_id)

        self.assertTrue(keep_going)
        client_update = self.client.last("billing:update")
        self.assertEqual(client_update["cost"], "1.00")
        self.assertEqual(client_update["balance"], "99.00")
        self.assertEqual(self.astrologer.last("billing:update")["earnings"], "0.90")

    async def test_free_session_without_wallet_keeps_running(self):
        admin_id = await seed_user(self.factory, "Admin", role="admin")
        self.connect(admin_id)
        live = await self.service.request_session(admin_id, self.astrologer_id)
        await self.service.accept_session(live.id, self.astrologer_id)
        self.clock.advance(5)

        keep_going = await self.service.run_billing_tick(live.id)

        self.assertTrue(keep_going)
        stored = await load_session(self.factory, live.id)
        self.assertEqual(stored.status, "active")
        self.assertEqual(stored.billed_seconds, 5)

        self.clock.advance(5)
        summary = await self.service.end_session(live.id, admin_id)

        self.assertEqual(summary["status"], "ended")
        self.assertEqual(summary["total_cost"], Decimal("0.00"))
        self.assertEqual((await load_session(self.factory, live.id)).end_reason, "completed")

    async def test_exhausted_balance_ends_session(self):
        tight_id = await seed_user(self.factory, "Tight", balance="10.00")
        tight = self.connect(tight_id)
        live = await self.service.request_session(tight_id, self.astrologer_id)
        await self.service.accept_session(live.id, self.astrologer_id)
        self.clock.advance(61)

        keep_going = await self.service.run_billing_tick(live.id)

        self.assertFalse(keep_going)
        ended = await load_session(self.factory, live.id)
        self.assertEqual(ended.status, "ended")
        self.assertEqual(ended.end_reason, "insufficient_balance")
        self.assertEqual(ended.total_cost, Decimal("10.00"))
        self.assertEqual(await balance_of(self.factory, tight_id), Decimal("0.00"))
        self.assertEqual(tight.last("session:ended")["reason"], "insufficient_balance")
        self.assertEqual(
            self.astrologer.last("session:ended")["reason"],
            "client_insufficient_balance",
        )
        self.assertFalse(self.service.scheduler.is_running(live.id))

    async def test_low_balance_warning_sent_once(self):
        tight_id = await seed_user(self.factory, "Tight", balance="15.00")
        tight = self.connect(tight_id)
        live = await self.service.request_session(tight_id, self.astrologer_id)
        await self.service.accept_session(live.id, self.astrologer_id)

        for seconds in (6, 30, 6):
            self.clock.advance(seconds)
            await self.service.run_billing_tick(live.id)

        self.assertEqual(len(tight.events("wallet:low_balance")), 1)
        self.assertEqual(len(tight.events("billing:update")), 3)

    async def test_tick_on_ended_session_stops(self):
        session_id = await self.start_session()
        await self.service.end_session(session_id, self.client_id)

        self.assertFalse(await self.service.run_billing_tick(session_id))


class TestRecovery(SessionServiceTestCase):

    async def test_recover_closes_open_sessions(self):
        other_id = await seed_user(self.factory, "Other", role="astrologer", rate="5.00")
        active_id = await seed_session(self.factory, self.client_id, self.astrologer_id)
        requested_id = await seed_session(
            self.factory, self.client_id, other_id, status="requested"
        )

        count = await self.service.recover_open_sessions()

        self.assertEqual(count, 2)
        active = await load_session(self.factory, active_id)
        requested = await load_session(self.factory, requested_id)
        self.assertEqual((active.status, active.end_reason), ("ended", "server_restart"))
        self.assertEqual((requested.status, requested.end_reason), ("rejected", "server_restart"))


class TestQueries(SessionServiceTestCase):

    async def test_pending_inbox_and_active_list(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)

        inbox = await self.service.list_open_for_astrologer(self.astrologer_id)
        self.assertEqual([s.id for s in inbox], [live.id])
        self.assertEqual(await self.service.list_active(), [])

        await self.service.accept_session(live.id, self.astrologer_id)
        self.assertEqual([s.id for s in await self.service.list_active()], [live.id])

    async def test_get_session_checks_participant(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)
        outsider_id = await seed_user(self.factory, "Outsider")

        with self.assertRaises(NotParticipantError):
            await self.service.get_session(live.id, outsider_id)
        fetched = await self.service.get_session(live.id, outsider_id, is_admin=True)
        self.assertEqual(fetched.id, live.id)


class TestTimeouts(SessionServiceTestCase):

    timer_options = {"request_timeout": 0.05, "reconnect_grace": 0.05}

    async def test_unanswered_request_expires(self):
        live = await self.service.request_session(self.client_id, self.astrologer_id)

        await asyncio.sleep(0.3)

        expired = await load_session(self.factory, live.id)
        self.assertEqual((expired.status, expired.end_reason), ("rejected", "timeout"))
        self.assertEqual(self.client.last("session:rejected")["reason"], "timeout")

    async def test_accept_cancels_request_timeout(self):
        session_id = await self.start_session()

        await asyncio.sleep(0.3)

        self.assertEqual((await load_session(self.factory, session_id)).status, "active")

    async def test_disconnect_without_return_ends_session(self):
        session_id = await self.start_session()
        self.registry.unregister(self.astrologer)

        await self.service.handle_disconnect(self.astrologer_id)
        self.assertEqual(
            self.client.last("session:peer_disconnected")["user_id"],
            self.astrologer_id,
        )
        await asyncio.sleep(0.3)

        ended = await load_session(self.factory, session_id)
        self.assertEqual((ended.status, ended.end_reason), ("ended", "disconnected"))
        self.assertEqual(self.client.last("session:ended")["reason"], "disconnected")

    async def test_reconnect_within_grace_keeps_session(self):
        session_id = await self.start_session()
        self.registry.unregister(self.astrologer)
        await self.service.handle_disconnect(self.astrologer_id)

        returned = self.connect(self.astrologer_id)
        await self.service.handle_reconnect(self.astrologer_id)
        await asyncio.sleep(0.3)

        self.assertEqual((await load_session(self.factory, session_id)).status, "active")
        self.assertEqual(returned.last("session:resume")["session_id"], session_id)
        self.assertTrue(returned.last("session:resume")["peer_online"])
        self.assertEqual(
            self.client.last("session:peer_reconnected")["user_id"],
            self.astrologer_id,
        )


if __name__ == "__main__":
    unittest.main()
