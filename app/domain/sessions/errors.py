class SessionError(Exception):
    """
    Base exception for all live-session domain errors.

    `code` is sent to clients verbatim; `status_code` is used
    when the error surfaces through the HTTP API.
    """
    code = "session_error"
    status_code = 400


class InvalidEventError(SessionError):
    """
    Raised when a client event is unknown or its payload is malformed.
    """
    code = "bad_request"
    status_code = 400


class SessionNotFoundError(SessionError):
    code = "session_not_found"
    status_code = 404


class NotParticipantError(SessionError):
    """
    Raised when a user acts on a session they do not belong to.
    """
    code = "forbidden"
    status_code = 403


class InvalidTransitionError(SessionError):
    """
    Raised when a status change is not allowed by the state machine.
    """
    code = "invalid_state"
    status_code = 409


class PeerOfflineError(SessionError):
    code = "offline"
    status_code = 409


class PeerBusyError(SessionError):
    """
    Raised when either party already has a requested or active session.
    """
    code = "busy"
    status_code = 409


class NotRegisteredError(SessionError):
    """
    Raised when the requester has no live connection.
    """
    code = "not_registered"
    status_code = 409


class InsufficientBalanceError(SessionError):
    code = "insufficient_balance"
    status_code = 402


class WalletNotFoundError(SessionError):
    code = "wallet_not_found"
    status_code = 404
