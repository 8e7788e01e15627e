from enum import Enum

from app.domain.sessions.errors import InvalidTransitionError


class SessionKind(str, Enum):
    CHAT = "chat"
    AUDIO = "audio"
    VIDEO = "video"

    @property
    def is_call(self) -> bool:
        return self is not SessionKind.CHAT


class SessionStatus(str, Enum):
    REQUESTED = "requested"
    ACTIVE = "active"
    ENDED = "ended"
    REJECTED = "rejected"


class EndReason(str, Enum):
    COMPLETED = "completed"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    DISCONNECTED = "disconnected"
    BILLING_ERROR = "billing_error"
    SERVER_RESTART = "server_restart"
    ADMIN = "admin"


class RejectReason(str, Enum):
    DECLINED = "declined"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    OFFLINE = "offline"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    SERVER_RESTART = "server_restart"


# Reasons a participant may give; the rest are recorded by the server
USER_REJECT_REASONS = (RejectReason.DECLINED, RejectReason.CANCELLED)

OPEN_STATUSES = (SessionStatus.REQUESTED.value, SessionStatus.ACTIVE.value)

TRANSITIONS = {
    SessionStatus.REQUESTED: {SessionStatus.ACTIVE, SessionStatus.REJECTED},
    SessionStatus.ACTIVE: {SessionStatus.ENDED},
    SessionStatus.ENDED: set(),
    SessionStatus.REJECTED: set(),
}


def ensure_transition(current, target: SessionStatus) -> SessionStatus:
    """
    Validate a status change and return the new status.

    `current` may be the raw column value.
    """
    current = SessionStatus(current)
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move session from '{current.value}' to '{target.value}'"
        )
    return target


def is_terminal(status) -> bool:
    return not TRANSITIONS[SessionStatus(status)]
