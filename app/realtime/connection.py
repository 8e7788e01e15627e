import json
import logging
import uuid
from typing import Any

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class Connection:
    """
    One live WebSocket of an authenticated user.

    A user may reconnect many times; each socket gets a fresh
    Connection with its own id.
    """

    def __init__(self, websocket: WebSocket, user_id: str):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.websocket = websocket
        self.closed = False

    async def send(self, event: str, data: Any = None) -> bool:
        """
        Push an event frame. Returns False when the socket is gone.
        """
        if self.closed:
            return False
        frame = {"event": event, "data": jsonable_encoder(data or {})}
        try:
            await self.websocket.send_text(json.dumps(frame))
            return True
        except Exception as e:
            logger.warning(f"WS push failed for {self.user_id[:8]} ({event}): {e}")
            self.closed = True
            return False

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]} user={self.user_id[:8]}>"
