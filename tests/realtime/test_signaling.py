import unittest

from app.domain.sessions.errors import (
    InvalidEventError,
    InvalidTransitionError,
    NotParticipantError,
    PeerOfflineError,
)
from app.domain.sessions.schemas import SignalEvent
from app.realtime.hub import LiveHub
from app.realtime.presence import PresenceRegistry
from app.realtime.signaling import SignalingRelay
from app.services.session_service import SessionService
from support import FakeConnection, make_database, seed_session, seed_user


class TestSignalingRelay(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.engine, self.factory = await make_database()
        self.registry = PresenceRegistry()
        self.hub = LiveHub(self.registry)
        self.sessions = SessionService(self.factory, notifier=self.hub, registry=self.registry)
        self.relay = SignalingRelay(self.sessions, self.hub)

        self.client_id = await seed_user(self.factory, "Client", balance="100.00")
        self.astrologer_id = await seed_user(self.factory, "Astrologer", role="astrologer")
        self.client = FakeConnection(self.client_id)
        self.astrologer = FakeConnection(self.astrologer_id)
        self.registry.register(str(self.client_id), self.client)
        self.registry.register(str(self.astrologer_id), self.astrologer)

    async def asyncTearDown(self):
        await self.sessions.shutdown()
        await self.engine.dispose()

    async def test_offer_reaches_peer(self):
        session_id = await seed_session(
            self.factory, self.client_id, self.astrologer_id, kind="video"
        )
        signal = SignalEvent(session_id=session_id, payload={"sdp": "v=0", "type": "offer"})

        await self.relay.relay(self.client_id, "call:offer", signal)

        forwarded = self.astrologer.last("call:offer")
        self.assertEqual(forwarded["session_id"], session_id)
        self.assertEqual(forwarded["from_user_id"], self.client_id)
        self.assertEqual(forwarded["payload"], {"sdp": "v=0", "type": "offer"})
        self.assertEqual(self.client.events("call:offer"), [])

    async def test_follows_reconnected_peer(self):
        session_id = await seed_session(
            self.factory, self.client_id, self.astrologer_id, kind="audio"
        )
        fresh = FakeConnection(self.client_id)
        self.registry.register(str(self.client_id), fresh)

        await self.relay.relay(
            self.astrologer_id,
            "call:answer",
            SignalEvent(session_id=session_id, payload={"type": "answer"}),
        )

        self.assertEqual(len(fresh.events("call:answer")), 1)
        self.assertEqual(self.client.events("call:answer"), [])

    async def test_outsider_is_refused(self):
        session_id = await seed_session(
            self.factory, self.client_id, self.astrologer_id, kind="audio"
        )
        outsider_id = await seed_user(self.factory, "Outsider")

        with self.assertRaises(NotParticipantError):
            await self.relay.relay(
                outsider_id,
                "call:candidate",
                SignalEvent(session_id=session_id, payload={}),
            )

    async def test_offline_peer(self):
        session_id = await seed_session(
            self.factory, self.client_id, self.astrologer_id, kind="audio"
        )
        self.registry.unregister(self.astrologer)

        with self.assertRaises(PeerOfflineError):
            await self.relay.relay(
                self.client_id,
                "call:candidate",
                SignalEvent(session_id=session_id, payload={"candidate": "x"}),
            )

    async def test_closed_session(self):
        session_id = await seed_session(
            self.factory, self.client_id, self.astrologer_id, kind="audio", status="ended"
        )
        with self.assertRaises(InvalidTransitionError):
            await self.relay.relay(
                self.client_id,
                "call:offer",
                SignalEvent(session_id=session_id, payload={}),
            )

    async def test_chat_sessions_do_not_signal(self):
        session_id = await seed_session(self.factory, self.client_id, self.astrologer_id)
        with self.assertRaises(InvalidEventError):
            await self.relay.relay(
                self.client_id,
                "call:offer",
                SignalEvent(session_id=session_id, payload={}),
            )


if __name__ == "__main__":
    unittest.main()
