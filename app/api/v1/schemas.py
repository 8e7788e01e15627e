from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.sessions.schemas import IntakeDetails
from app.domain.sessions.states import USER_REJECT_REASONS, RejectReason, SessionKind


# ─────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────

class SessionCreateRequest(BaseModel):
    astrologer_id: UUID
    kind: SessionKind = SessionKind.CHAT
    intake: Optional[IntakeDetails] = None


class SessionRejectRequest(BaseModel):
    reason: Optional[RejectReason] = None

    @field_validator("reason")
    @classmethod
    def reason_is_user_choice(cls, value):
        if value is not None and value not in USER_REJECT_REASONS:
            raise ValueError("reason must be declined or cancelled")
        return value


class SessionResponse(BaseModel):
    session_id: UUID
    kind: str
    status: str
    client_id: UUID
    astrologer_id: UUID
    rate_per_minute: Decimal
    requested_at: datetime
    accepted_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: int
    total_cost: Decimal
    end_reason: Optional[str] = None


# ─────────────────────────────────────────────
# Wallet
# ─────────────────────────────────────────────

class WalletResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    balance: Decimal
    currency: str


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    type: str
    description: Optional[str] = None
    session_id: Optional[UUID] = None
    balance_after: Decimal
    created_at: datetime


class TransactionListResponse(BaseModel):
    items: List[TransactionResponse] = Field(default_factory=list)


# ─────────────────────────────────────────────
# Astrologers
# ─────────────────────────────────────────────

class OnlineAstrologer(BaseModel):
    user_id: UUID
    name: str
    rate_per_minute: Optional[Decimal] = None
    languages: List[str] = Field(default_factory=list)
    specialties: List[str] = Field(default_factory=list)
    experience_years: int = 0
    busy: bool = False
