import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.persistence.base import Base


class WalletTransaction(Base):
    """
    Ledger entry for a single balance change.

    Used for:
    - session charges and earnings
    - admin credits
    - wallet history
    """

    __tablename__ = "wallet_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # ─────────────────────────────────────────────
    # Entry Details
    # ─────────────────────────────────────────────

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False
    )

    type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="credit or debit"
    )

    description: Mapped[str] = mapped_column(
        String(255),
        default="",
        nullable=False
    )

    session_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("live_sessions.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    balance_after: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False
    )

    # ─────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index(
            "ix_wallet_transactions_wallet_time",
            "wallet_id",
            "created_at"
        ),
    )
