import logging
from uuid import UUID

from app.domain.sessions.errors import InvalidEventError, PeerOfflineError
from app.domain.sessions.schemas import SignalEvent
from app.domain.sessions.states import SessionKind

logger = logging.getLogger(__name__)

SIGNAL_EVENTS = ("call:offer", "call:answer", "call:candidate")


class SignalingRelay:
    """
    Forwards WebRTC offer / answer / candidate messages between the
    two participants of an open call. Payloads are opaque.
    """

    def __init__(self, sessions, hub):
        self.sessions = sessions
        self.hub = hub

    async def relay(self, sender_id: UUID, event: str, signal: SignalEvent) -> None:
        if event not in SIGNAL_EVENTS:
            raise InvalidEventError(f"Unknown signaling event '{event}'")

        live, peer_id = await self.sessions.peer_for_signal(signal.session_id, sender_id)
        if not SessionKind(live.kind).is_call:
            raise InvalidEventError("Signaling is only available for calls")

        delivered = await self.hub.emit_to_user(
            peer_id,
            event,
            {
                "session_id": live.id,
                "from_user_id": sender_id,
                "payload": signal.payload,
            },
        )
        if not delivered:
            logger.warning(f"{event} for session {live.id} dropped: peer offline")
            raise PeerOfflineError("Peer is offline")
