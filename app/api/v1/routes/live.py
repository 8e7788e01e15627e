import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.config import settings
from app.persistence.db import AsyncSessionLocal
from app.persistence.repositories.user_repo import UserRepository
from app.realtime.connection import Connection
from app.security.tokens import TokenError, decode_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def live_socket(websocket: WebSocket, token: str | None = Query(None)):
    """
    The live channel: presence, session control, call signaling and chat.

    Frames are JSON {"event", "data"}. A plain "ping" gets "pong";
    an idle socket gets a `keepalive` event.
    Close codes: 4001 missing or invalid token, 4003 unknown user.
    """
    await websocket.accept()

    try:
        user_id = decode_access_token(token or "")
    except TokenError as e:
        await websocket.close(code=4001, reason=str(e))
        return

    async with AsyncSessionLocal() as session:
        user = await UserRepository(session).get_by_id(user_id)
    if user is None or not user.is_active:
        await websocket.close(code=4003, reason="Forbidden")
        return

    runtime = websocket.app.state.live
    connection = Connection(websocket, str(user_id))

    try:
        await runtime.presence.connect(connection)
        await connection.send("connected", {"user_id": user_id, "role": user.role})
        logger.info(f"WS connected: {connection.user_id[:8]}")

        while True:
            try:
                message = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=settings.WS_IDLE_TIMEOUT_SECONDS,
                )
            except asyncio.TimeoutError:
                await connection.send("keepalive")
                continue

            if message == "ping":
                await websocket.send_text("pong")
                continue
            await runtime.hub.dispatch(connection, message)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WS error {connection.user_id[:8]}: {e}")
    finally:
        connection.closed = True
        await runtime.presence.disconnect(connection)
        logger.info(f"WS disconnected: {connection.user_id[:8]}")
