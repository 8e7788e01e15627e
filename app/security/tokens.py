import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt

from app.config import settings

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """
    Raised when a bearer token is missing, malformed or expired.
    """


def create_access_token(
    user_id: uuid.UUID | str,
    role: str,
    expires_minutes: int | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    minutes = settings.JWT_EXPIRE_MINUTES if expires_minutes is None else expires_minutes

    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Validate a token and return the user id it was issued for.
    """
    if not token:
        raise TokenError("Missing token")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected token: {e}")
        raise TokenError("Invalid token")

    if payload.get("type") != "access":
        raise TokenError("Wrong token type")

    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise TokenError("Invalid subject")
