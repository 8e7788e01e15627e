import json
import unittest
import uuid

from pydantic import BaseModel

from app.domain.sessions.errors import PeerBusyError
from app.realtime.hub import LiveHub
from app.realtime.presence import PresenceRegistry
from support import FakeConnection


class _Payload(BaseModel):
    session_id: uuid.UUID


class TestLiveHub(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.registry = PresenceRegistry()
        self.hub = LiveHub(self.registry)
        self.user_id = str(uuid.uuid4())
        self.conn = FakeConnection(self.user_id)
        self.registry.register(self.user_id, self.conn)

    async def test_dispatch_calls_handler(self):
        received = []

        async def handler(connection, data):
            received.append((connection, data))

        self.hub.on("demo:event", handler)
        await self.hub.dispatch(self.conn, json.dumps({"event": "demo:event", "data": {"x": 1}}))

        self.assertEqual(received, [(self.conn, {"x": 1})])
        self.assertEqual(self.conn.events("error"), [])

    async def test_invalid_json(self):
        await self.hub.dispatch(self.conn, "{not json")
        error = self.conn.last("error")
        self.assertEqual(error["code"], "bad_request")

    async def test_unknown_event(self):
        await self.hub.dispatch(self.conn, json.dumps({"event": "nope"}))
        error = self.conn.last("error")
        self.assertEqual(error["code"], "bad_request")
        self.assertEqual(error["event"], "nope")

    async def test_validation_error_is_bad_request(self):
        async def handler(connection, data):
            _Payload.model_validate(data)

        self.hub.on("demo:event", handler)
        await self.hub.dispatch(
            self.conn,
            json.dumps({"event": "demo:event", "data": {"session_id": "x"}}),
        )
        error = self.conn.last("error")
        self.assertEqual(error["code"], "bad_request")
        self.assertIn("session_id", error["message"])

    async def test_session_error_keeps_its_code(self):
        async def handler(connection, data):
            raise PeerBusyError("Astrologer is busy")

        self.hub.on("demo:event", handler)
        await self.hub.dispatch(self.conn, json.dumps({"event": "demo:event"}))

        error = self.conn.last("error")
        self.assertEqual(error["code"], "busy")
        self.assertEqual(error["message"], "Astrologer is busy")

    async def test_unexpected_error_is_internal(self):
        async def handler(connection, data):
            raise RuntimeError("boom")

        self.hub.on("demo:event", handler)
        with self.assertLogs("app.realtime.hub", level="ERROR"):
            await self.hub.dispatch(self.conn, json.dumps({"event": "demo:event"}))

        self.assertEqual(self.conn.last("error")["code"], "internal")

    async def test_emit_to_user(self):
        self.assertTrue(await self.hub.emit_to_user(uuid.UUID(self.user_id), "ping", {"a": 1}))
        self.assertFalse(await self.hub.emit_to_user(uuid.uuid4(), "ping"))
        self.assertFalse(await self.hub.emit_to_user(None, "ping"))
        self.assertEqual(self.conn.events("ping"), [{"a": 1}])

    async def test_broadcast_skips_excluded(self):
        other_id = str(uuid.uuid4())
        other = FakeConnection(other_id)
        self.registry.register(other_id, other)

        sent = await self.hub.broadcast("presence:status", {"online": True}, exclude=[self.user_id])

        self.assertEqual(sent, 1)
        self.assertEqual(len(other.events("presence:status")), 1)
        self.assertEqual(self.conn.events("presence:status"), [])


if __name__ == "__main__":
    unittest.main()
