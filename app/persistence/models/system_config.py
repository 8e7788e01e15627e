import uuid
from typing import Any
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.persistence.base import Base


CONFIG_KEYS = ("default_chat_rate", "default_call_rate", "test_mode_enabled")


class SystemConfig(Base):
    """
    Admin-editable runtime switches.

    Keys are restricted to CONFIG_KEYS.
    """

    __tablename__ = "system_config"

    key: Mapped[str] = mapped_column(
        String(50),
        primary_key=True
    )

    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=False
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True
    )

    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
