import uuid
from sqlalchemy import String, Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from datetime import datetime

from app.persistence.base import Base


USER_ROLES = ("client", "astrologer", "admin")


class User(Base):
    """
    Represents a marketplace user.

    This can be:
    - a client (pays for sessions)
    - an astrologer (is paid for sessions)
    - an admin (never charged, manages config)
    """

    __tablename__ = "users"

    # ─────────────────────────────────────────────
    # Primary Key
    # ─────────────────────────────────────────────

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    # ─────────────────────────────────────────────
    # Identity
    # ─────────────────────────────────────────────

    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True
    )

    phone: Mapped[str | None] = mapped_column(
        String(20),
        unique=True,
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Role & Status
    # ─────────────────────────────────────────────

    role: Mapped[str] = mapped_column(
        String(20),
        default="client",
        nullable=False,
        doc="client, astrologer, admin"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )

    # ─────────────────────────────────────────────
    # Timestamps
    # ─────────────────────────────────────────────

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
