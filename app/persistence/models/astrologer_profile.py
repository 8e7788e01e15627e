import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.persistence.base import Base


class AstrologerProfile(Base):
    """
    Public profile of an astrologer.

    `rate_per_minute` is what clients pay; when it is NULL the
    system-wide default for the session kind applies.
    """

    __tablename__ = "astrologer_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True
    )

    # ─────────────────────────────────────────────
    # Pricing
    # ─────────────────────────────────────────────

    rate_per_minute: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Profile
    # ─────────────────────────────────────────────

    languages: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False
    )

    specialties: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False
    )

    experience_years: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False
    )

    bio: Mapped[str | None] = mapped_column(
        Text,
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Presence
    # ─────────────────────────────────────────────

    is_online: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    last_active: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
