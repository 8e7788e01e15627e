import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from pydantic import ValidationError

from app.domain.sessions.errors import SessionError
from app.realtime.presence import LiveConnection, PresenceRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[LiveConnection, dict], Awaitable[None]]


class LiveHub:
    """
    Routes events to users and dispatches inbound client frames.

    Frames are JSON objects: {"event": str, "data": object}.
    Handler errors go back to the sender as an `error` event and
    never close the socket.
    """

    def __init__(self, registry: PresenceRegistry):
        self.registry = registry
        self._handlers: Dict[str, Handler] = {}

    # ─────────────────────────────────────────────
    # Outbound
    # ─────────────────────────────────────────────

    async def emit_to_user(self, user_id, event: str, data: Any = None) -> bool:
        """
        Send to the user's current connection. False if offline.
        """
        if user_id is None:
            return False
        connection = self.registry.get(user_id)
        if connection is None:
            return False
        return await connection.send(event, data)

    async def broadcast(
        self,
        event: str,
        data: Any = None,
        exclude: Iterable[str] = (),
    ) -> int:
        skip = {str(user_id) for user_id in exclude}
        sent = 0
        for connection in self.registry.connections():
            if connection.user_id in skip:
                continue
            if await connection.send(event, data):
                sent += 1
        return sent

    # ─────────────────────────────────────────────
    # Inbound
    # ─────────────────────────────────────────────

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event] = handler

    @property
    def events(self) -> list:
        return sorted(self._handlers)

    async def dispatch(self, connection: LiveConnection, raw: str) -> None:
        event: Optional[str] = None
        try:
            event, data = self._parse(raw)
            handler = self._handlers.get(event)
            if handler is None:
                raise _BadFrame(f"Unknown event '{event}'")
            await handler(connection, data)

        except _BadFrame as e:
            await self._error(connection, event, "bad_request", str(e))
        except ValidationError as e:
            await self._error(connection, event, "bad_request", _describe(e))
        except SessionError as e:
            await self._error(connection, event, e.code, str(e))
        except Exception:
            logger.exception(f"Handler for '{event}' failed (user {connection.user_id})")
            await self._error(connection, event, "internal", "Internal error")

    def _parse(self, raw: str):
        try:
            frame = json.loads(raw)
        except ValueError:
            raise _BadFrame("Frame is not valid JSON")

        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            raise _BadFrame("Frame must be an object with an 'event' name")

        data = frame.get("data") or {}
        if not isinstance(data, dict):
            raise _BadFrame("'data' must be an object")
        return frame["event"], data

    async def _error(
        self,
        connection: LiveConnection,
        event: Optional[str],
        code: str,
        message: str,
    ) -> None:
        await connection.send(
            "error",
            {"code": code, "message": message, "event": event},
        )


class _BadFrame(Exception):
    pass


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg"))
    return "; ".join(parts) or "Invalid payload"
