import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.persistence.base import Base


class LiveSession(Base):
    """
    A metered chat or call between a client and an astrologer.

    The row is the source of truth for billing progress:
    `billed_seconds` only ever grows, and every charge advances it
    in the same transaction as the wallet updates.
    """

    __tablename__ = "live_sessions"

    # ─────────────────────────────────────────────
    # Primary Key
    # ─────────────────────────────────────────────

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    kind: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="chat, audio, video"
    )

    # ─────────────────────────────────────────────
    # Participants
    # ─────────────────────────────────────────────

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    astrologer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # ─────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────

    status: Mapped[str] = mapped_column(
        String(20),
        default="requested",
        nullable=False,
        doc="requested, active, ended, rejected"
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )

    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    end_reason: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True
    )

    ended_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True
    )

    # ─────────────────────────────────────────────
    # Billing
    # ─────────────────────────────────────────────

    rate_per_minute: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False
    )

    is_free: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )

    billed_seconds: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False
    )

    duration_seconds: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False
    )

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False
    )

    astrologer_earnings: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False
    )

    platform_commission: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False
    )

    # ─────────────────────────────────────────────
    # Intake
    # ─────────────────────────────────────────────

    intake_details: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
        doc="name, gender, date_of_birth, time_of_birth, place_of_birth"
    )

    # ─────────────────────────────────────────────
    # Metadata
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

    __table_args__ = (
        Index(
            "ix_live_sessions_client_status",
            "client_id",
            "status"
        ),
        Index(
            "ix_live_sessions_astrologer_status",
            "astrologer_id",
            "status"
        ),
    )

    def peer_of(self, user_id: uuid.UUID) -> uuid.UUID | None:
        if user_id == self.client_id:
            return self.astrologer_id
        if user_id == self.astrologer_id:
            return self.client_id
        return None

    def summary(self) -> dict:
        return {
            "session_id": self.id,
            "kind": self.kind,
            "status": self.status,
            "client_id": self.client_id,
            "astrologer_id": self.astrologer_id,
            "rate_per_minute": self.rate_per_minute,
            "requested_at": self.requested_at,
            "accepted_at": self.accepted_at,
            "ended_at": self.ended_at,
            "duration_seconds": self.duration_seconds,
            "total_cost": self.total_cost,
            "end_reason": self.end_reason,
        }
