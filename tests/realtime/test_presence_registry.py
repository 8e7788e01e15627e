import unittest
import uuid

from app.realtime.presence import (
    PendingMessageQueue,
    PresenceRegistry,
    validate_user_id,
)
from support import FakeConnection


class TestPresenceRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = PresenceRegistry()
        self.user_id = str(uuid.uuid4())

    def test_register_and_lookup(self):
        conn = FakeConnection(self.user_id)
        self.assertIsNone(self.registry.register(self.user_id, conn))

        self.assertIs(self.registry.get(self.user_id), conn)
        self.assertTrue(self.registry.is_online(uuid.UUID(self.user_id)))
        self.assertEqual(self.registry.online_user_ids(), [self.user_id])
        self.assertEqual(len(self.registry), 1)

    def test_reconnect_replaces_previous_connection(self):
        old = FakeConnection(self.user_id)
        new = FakeConnection(self.user_id)
        self.registry.register(self.user_id, old)

        replaced = self.registry.register(self.user_id, new)

        self.assertIs(replaced, old)
        self.assertIs(self.registry.get(self.user_id), new)

    def test_stale_close_keeps_new_connection(self):
        old = FakeConnection(self.user_id)
        new = FakeConnection(self.user_id)
        self.registry.register(self.user_id, old)
        self.registry.register(self.user_id, new)

        self.assertIsNone(self.registry.unregister(old))
        self.assertIs(self.registry.get(self.user_id), new)

    def test_unregister_current_connection_goes_offline(self):
        conn = FakeConnection(self.user_id)
        self.registry.register(self.user_id, conn)

        self.assertEqual(self.registry.unregister(conn), self.user_id)
        self.assertFalse(self.registry.is_online(self.user_id))
        self.assertIsNone(self.registry.unregister(conn))

    def test_user_ids_are_normalized(self):
        upper = self.user_id.upper()
        conn = FakeConnection(self.user_id)
        self.registry.register(f"  {upper} ", conn)
        self.assertIs(self.registry.get(self.user_id), conn)

    def test_rejects_invalid_user_ids(self):
        for bad in ["", "[object Object]", "not-a-uuid", None, 42]:
            with self.subTest(bad=bad):
                with self.assertRaises(ValueError):
                    validate_user_id(bad)


class TestPendingMessageQueue(unittest.TestCase):

    def test_drain_returns_messages_in_order_once(self):
        queue = PendingMessageQueue(limit=10)
        user_id = str(uuid.uuid4())
        queue.push(user_id, {"n": 1})
        queue.push(user_id, {"n": 2})

        self.assertEqual(queue.pending_count(user_id), 2)
        self.assertEqual(queue.drain(user_id), [{"n": 1}, {"n": 2}])
        self.assertEqual(queue.drain(user_id), [])

    def test_oldest_dropped_when_full(self):
        queue = PendingMessageQueue(limit=2)
        user_id = str(uuid.uuid4())
        for n in range(3):
            queue.push(user_id, {"n": n})

        self.assertEqual(queue.drain(user_id), [{"n": 1}, {"n": 2}])


if __name__ == "__main__":
    unittest.main()
