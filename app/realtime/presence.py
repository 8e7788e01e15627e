"""
In-process presence tracking.

The registry maps a durable user id to the user's *current*
connection. Reconnects replace the mapping; the old socket's close
event must not remove the new one.
"""

import uuid
from collections import deque
from typing import Deque, Dict, List, Optional, Protocol


class LiveConnection(Protocol):
    id: str
    user_id: str

    async def send(self, event: str, data=None) -> bool: ...


def validate_user_id(user_id) -> str:
    """
    Normalize a user id, rejecting junk such as '[object Object]'.
    """
    if not isinstance(user_id, (str, uuid.UUID)):
        raise ValueError(f"Invalid user id: {user_id!r}")
    try:
        return str(uuid.UUID(str(user_id).strip()))
    except ValueError:
        raise ValueError(f"Invalid user id: {user_id!r}") from None


class PresenceRegistry:

    def __init__(self):
        self._by_user: Dict[str, LiveConnection] = {}
        self._by_connection: Dict[str, str] = {}

    def register(
        self,
        user_id: str,
        connection: LiveConnection,
    ) -> Optional[LiveConnection]:
        """
        Make `connection` the user's current connection.

        Returns the connection it replaced, if any.
        """
        user_id = validate_user_id(user_id)
        previous = self._by_user.get(user_id)

        self._by_user[user_id] = connection
        self._by_connection[connection.id] = user_id

        if previous is not None and previous.id != connection.id:
            self._by_connection.pop(previous.id, None)
            return previous
        return None

    def unregister(self, connection: LiveConnection) -> Optional[str]:
        """
        Drop a closed connection.

        Returns the user id only if the user is now offline, i.e. the
        connection was still the current one.
        """
        user_id = self._by_connection.pop(connection.id, None)
        if user_id is None:
            return None

        current = self._by_user.get(user_id)
        if current is not None and current.id == connection.id:
            del self._by_user[user_id]
            return user_id
        return None

    def get(self, user_id) -> Optional[LiveConnection]:
        return self._by_user.get(_key(user_id))

    def is_online(self, user_id) -> bool:
        return _key(user_id) in self._by_user

    def online_user_ids(self) -> List[str]:
        return list(self._by_user.keys())

    def connections(self) -> List[LiveConnection]:
        return list(self._by_user.values())

    def __len__(self) -> int:
        return len(self._by_user)


class PendingMessageQueue:
    """
    Bounded per-recipient FIFO of events for offline users.

    When full, the oldest entry is dropped.
    """

    def __init__(self, limit: int = 100):
        self.limit = limit
        self._queues: Dict[str, Deque[dict]] = {}

    def push(self, user_id, message: dict) -> None:
        key = _key(user_id)
        queue = self._queues.setdefault(key, deque(maxlen=self.limit))
        queue.append(message)

    def drain(self, user_id) -> List[dict]:
        queue = self._queues.pop(_key(user_id), None)
        return list(queue) if queue else []

    def pending_count(self, user_id) -> int:
        return len(self._queues.get(_key(user_id), ()))


def _key(user_id) -> str:
    return str(user_id).strip().lower()
