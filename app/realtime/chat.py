import logging
from datetime import datetime
from typing import Callable, List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domain.sessions.clock import utcnow
from app.domain.sessions.errors import InvalidEventError, NotParticipantError
from app.domain.sessions.schemas import ChatMessageEvent, ChatReadEvent, ChatTypingEvent
from app.persistence.repositories.chat_message_repo import ChatMessageRepository
from app.realtime.presence import LiveConnection, PendingMessageQueue

logger = logging.getLogger(__name__)


class ChatRelay:
    """
    Chat inside active sessions.

    Messages are stored first, then pushed to the peer's current
    connection, or queued in memory until the peer registers again.
    The sender always gets its message back with `status`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sessions,
        hub,
        pending: PendingMessageQueue,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.sessions = sessions
        self.hub = hub
        self.pending = pending
        self.clock = clock

    async def send_message(self, sender_id: UUID, event: ChatMessageEvent) -> dict:
        if event.type == "text" and not event.text.strip():
            raise InvalidEventError("Message text is empty")
        if event.type != "text" and not event.media_url:
            raise InvalidEventError(f"{event.type} messages need a media_url")

        live = await self.sessions.require_active_participant(event.session_id, sender_id)
        receiver_id = live.peer_of(sender_id)
        now = self.clock()

        async with self.session_factory() as db:
            repo = ChatMessageRepository(db)
            message = await repo.create(
                session_id=live.id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=event.text,
                message_type=event.type,
                media_url=event.media_url,
                duration=event.duration,
                client_temp_id=event.temp_id,
                created_at=now,
            )
            await db.commit()
            payload = message.to_event()

            delivered = await self.hub.emit_to_user(receiver_id, "chat:message", payload)
            if delivered:
                await repo.mark_delivered([message.id], now)
                await db.commit()

        if not delivered:
            self.pending.push(receiver_id, payload)
            logger.info(f"Queued message {message.id} for offline user {receiver_id}")

        status = "sent" if delivered else "queued"
        await self.hub.emit_to_user(sender_id, "chat:message", {**payload, "status": status})
        return {**payload, "status": status}

    async def typing(self, sender_id: UUID, event: ChatTypingEvent) -> None:
        live = await self.sessions.require_active_participant(event.session_id, sender_id)
        await self.hub.emit_to_user(
            live.peer_of(sender_id),
            "chat:typing",
            {
                "session_id": live.id,
                "user_id": sender_id,
                "is_typing": event.is_typing,
            },
        )

    async def mark_read(self, reader_id: UUID, event: ChatReadEvent) -> None:
        await self.sessions.get_session(event.session_id, reader_id)

        async with self.session_factory() as db:
            message = await ChatMessageRepository(db).get_by_id(event.message_id)
            if message is None or message.session_id != event.session_id:
                raise InvalidEventError("Unknown message")
            if message.receiver_id != reader_id:
                raise NotParticipantError("Only the receiver can mark a message read")

            if message.read_at is None:
                message.read_at = self.clock()
                await db.commit()
            sender_id = message.sender_id
            read_at = message.read_at

        await self.hub.emit_to_user(
            sender_id,
            "chat:status",
            {
                "session_id": event.session_id,
                "message_id": event.message_id,
                "status": "read",
                "read_at": read_at,
            },
        )

    async def flush_pending(self, connection: LiveConnection) -> int:
        """
        Push messages queued while the user was away. Returns how many
        were delivered; the rest go back to the queue.
        """
        queued = self.pending.drain(connection.user_id)
        delivered: List = []
        for index, payload in enumerate(queued):
            if not await connection.send("chat:message", payload):
                for rest in queued[index:]:
                    self.pending.push(connection.user_id, rest)
                break
            delivered.append(payload["message_id"])

        if delivered:
            async with self.session_factory() as db:
                await ChatMessageRepository(db).mark_delivered(delivered, self.clock())
                await db.commit()
            logger.info(f"Flushed {len(delivered)} queued messages to {connection.user_id}")
        return len(delivered)

    async def history(
        self,
        session_id: UUID,
        user_id: UUID,
        is_admin: bool = False,
        limit: int = 200,
    ) -> List[dict]:
        await self.sessions.get_session(session_id, user_id, is_admin=is_admin)
        async with self.session_factory() as db:
            messages = await ChatMessageRepository(db).list_for_session(session_id, limit=limit)
        return [message.to_event() for message in messages]
