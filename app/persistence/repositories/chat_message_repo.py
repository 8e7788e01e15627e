from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.repositories.base import BaseRepository
from app.persistence.models.chat_message import ChatMessage


class ChatMessageRepository(BaseRepository[ChatMessage]):
    model = ChatMessage

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create(
        self,
        session_id,
        sender_id,
        receiver_id,
        content: str,
        message_type: str = "text",
        media_url: str | None = None,
        duration: int = 0,
        client_temp_id: str | None = None,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        message = ChatMessage(
            session_id=session_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            message_type=message_type,
            media_url=media_url,
            duration=duration,
            client_temp_id=client_temp_id,
        )
        if created_at is not None:
            message.created_at = created_at
        return await self.add(message)

    async def list_for_session(
        self,
        session_id,
        limit: int = 200,
    ) -> list[ChatMessage]:
        """
        Messages of a session in chronological order.
        """
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_delivered(self, message_ids, at: datetime) -> None:
        if not message_ids:
            return
        stmt = (
            update(ChatMessage)
            .where(
                ChatMessage.id.in_(list(message_ids)),
                ChatMessage.delivered_at.is_(None),
            )
            .values(delivered_at=at)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
