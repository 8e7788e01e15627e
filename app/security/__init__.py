"""
Security Module

Bearer token helpers for the HTTP API and the live WebSocket.
"""

from app.security.tokens import (
    TokenError,
    create_access_token,
    decode_access_token,
)

__all__ = [
    "TokenError",
    "create_access_token",
    "decode_access_token",
]
