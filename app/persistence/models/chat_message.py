import uuid
from datetime import datetime
from sqlalchemy import String, Text, ForeignKey, DateTime, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.persistence.base import Base

class ChatMessage(Base):
    """
    Stores messages exchanged inside a live chat session.
    """
    __tablename__ = "chat_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("live_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    message_type: Mapped[str] = mapped_column(
        String(10), # 'text', 'image' or 'audio'
        default="text",
        nullable=False
    )

    content: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False
    )

    media_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True
    )

    duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False
    )

    client_temp_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True
    )

    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def to_event(self) -> dict:
        return {
            "message_id": self.id,
            "session_id": self.session_id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "type": self.message_type,
            "text": self.content,
            "media_url": self.media_url,
            "duration": self.duration,
            "temp_id": self.client_temp_id,
            "timestamp": self.created_at,
        }
