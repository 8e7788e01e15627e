from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.sessions.states import SessionKind


# ─────────────────────────────────────────────
# Intake
# ─────────────────────────────────────────────

class IntakeDetails(BaseModel):
    """
    Birth details the client shares with the astrologer up front.
    """
    name: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = Field(None, description="YYYY-MM-DD")
    time_of_birth: Optional[str] = Field(None, description="HH:mm")
    place_of_birth: Optional[str] = None


# ─────────────────────────────────────────────
# Inbound client events
# ─────────────────────────────────────────────

class SessionRequestEvent(BaseModel):
    astrologer_id: UUID
    kind: SessionKind = SessionKind.CHAT
    intake: Optional[IntakeDetails] = None


class SessionRefEvent(BaseModel):
    session_id: UUID


class SignalEvent(BaseModel):
    session_id: UUID
    payload: Dict[str, Any]


class ChatMessageEvent(BaseModel):
    session_id: UUID
    text: str = ""
    type: str = Field("text", pattern="^(text|image|audio)$")
    media_url: Optional[str] = None
    duration: int = 0
    temp_id: Optional[str] = Field(None, max_length=64)


class ChatTypingEvent(BaseModel):
    session_id: UUID
    is_typing: bool = True


class ChatReadEvent(BaseModel):
    session_id: UUID
    message_id: UUID


# ─────────────────────────────────────────────
# Outbound billing snapshots
# ─────────────────────────────────────────────

class TickOutcome(BaseModel):
    """
    Result of one billing tick.

    Exactly one of `stopped`, `insufficient`, `charged` describes
    what happened; a tick with none of them set was a no-op.
    """
    session_id: UUID
    client_id: Optional[UUID] = None
    astrologer_id: Optional[UUID] = None
    stopped: bool = False
    insufficient: bool = False
    charged: bool = False
    elapsed: int = 0
    total_cost: str = "0.00"
    earnings: str = "0.00"
    balance: Optional[str] = None
    low_balance: bool = False
