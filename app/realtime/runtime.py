import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.cache.presence_cache import PresenceCache
from app.config import settings
from app.domain.sessions.schemas import (
    ChatMessageEvent,
    ChatReadEvent,
    ChatTypingEvent,
    SessionRefEvent,
    SessionRequestEvent,
    SignalEvent,
)
from app.realtime.chat import ChatRelay
from app.realtime.hub import LiveHub
from app.realtime.presence import LiveConnection, PendingMessageQueue, PresenceRegistry
from app.realtime.signaling import SIGNAL_EVENTS, SignalingRelay
from app.services.billing_service import BillingService
from app.services.config_service import ConfigService
from app.services.presence_service import PresenceService
from app.services.session_service import SessionService

logger = logging.getLogger(__name__)


class LiveRuntime:
    """
    Process-wide wiring of the live layer.

    One instance lives on `app.state.live` for the lifetime of the
    FastAPI app; tests build their own with a test session factory.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: PresenceCache | None = None,
        **session_options,
    ):
        self.registry = PresenceRegistry()
        self.pending = PendingMessageQueue(limit=settings.PENDING_MESSAGE_LIMIT)
        self.hub = LiveHub(self.registry)

        self.config = ConfigService()
        self.billing = BillingService()
        self.sessions = SessionService(
            session_factory,
            notifier=self.hub,
            registry=self.registry,
            billing=self.billing,
            config=self.config,
            **session_options,
        )
        self.chat = ChatRelay(session_factory, self.sessions, self.hub, self.pending)
        self.signaling = SignalingRelay(self.sessions, self.hub)
        self.presence = PresenceService(
            self.registry,
            self.hub,
            session_factory,
            self.sessions,
            self.chat,
            cache=cache,
        )
        self._bind()

    async def start(self) -> None:
        await self.sessions.recover_open_sessions()
        logger.info("Live runtime started")

    async def shutdown(self) -> None:
        await self.sessions.shutdown()
        logger.info("Live runtime stopped")

    # ─────────────────────────────────────────────
    # Client events
    # ─────────────────────────────────────────────

    def _bind(self) -> None:
        hub = self.hub
        hub.on("presence:list", self._on_presence_list)
        hub.on("session:request", self._on_session_request)
        hub.on("session:accept", self._on_session_accept)
        hub.on("session:reject", self._on_session_reject)
        hub.on("session:end", self._on_session_end)
        for event in SIGNAL_EVENTS:
            hub.on(event, self._signal_handler(event))
        hub.on("chat:message", self._on_chat_message)
        hub.on("chat:typing", self._on_chat_typing)
        hub.on("chat:read", self._on_chat_read)

    async def _on_presence_list(self, connection: LiveConnection, data: dict) -> None:
        users = await self.presence.list_online()
        await connection.send("presence:list", {"users": users})

    async def _on_session_request(self, connection: LiveConnection, data: dict) -> None:
        event = SessionRequestEvent.model_validate(data)
        await self.sessions.request_session(
            UUID(connection.user_id),
            event.astrologer_id,
            kind=event.kind,
            intake=event.intake,
        )

    async def _on_session_accept(self, connection: LiveConnection, data: dict) -> None:
        event = SessionRefEvent.model_validate(data)
        await self.sessions.accept_session(event.session_id, UUID(connection.user_id))

    async def _on_session_reject(self, connection: LiveConnection, data: dict) -> None:
        event = SessionRefEvent.model_validate(data)
        await self.sessions.reject_session(event.session_id, UUID(connection.user_id))

    async def _on_session_end(self, connection: LiveConnection, data: dict) -> None:
        event = SessionRefEvent.model_validate(data)
        await self.sessions.end_session(event.session_id, UUID(connection.user_id))

    def _signal_handler(self, name: str):
        async def handler(connection: LiveConnection, data: dict) -> None:
            signal = SignalEvent.model_validate(data)
            await self.signaling.relay(UUID(connection.user_id), name, signal)
        return handler

    async def _on_chat_message(self, connection: LiveConnection, data: dict) -> None:
        event = ChatMessageEvent.model_validate(data)
        await self.chat.send_message(UUID(connection.user_id), event)

    async def _on_chat_typing(self, connection: LiveConnection, data: dict) -> None:
        event = ChatTypingEvent.model_validate(data)
        await self.chat.typing(UUID(connection.user_id), event)

    async def _on_chat_read(self, connection: LiveConnection, data: dict) -> None:
        event = ChatReadEvent.model_validate(data)
        await self.chat.mark_read(UUID(connection.user_id), event)
