"""Hub connection tokens.

A connection token is a JWT scoped to one hub. negotiate issues it,
the /client/ WebSocket endpoint verifies it.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from hubrelay.config import Settings


class TokenError(Exception):
    """Raised when token verification fails."""


def create_connection_token(
    settings: Settings,
    hub: str,
    *,
    subject: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> tuple[str, datetime]:
    """Create a connection token for a hub. Returns (token, expires_at)."""
    now = datetime.now(timezone.utc)
    if expires_minutes is None:
        expires_minutes = settings.connection_token_expire_minutes
    expires = now + timedelta(minutes=expires_minutes)
    payload = {
        "sub": subject or f"anon-{uuid.uuid4().hex[:12]}",
        "type": "hub_connection",
        "hub": hub,
        "exp": expires,
        "iat": now,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires


def verify_token(settings: Settings, token: str, *, hub: Optional[str] = None) -> dict:
    """Verify and decode a connection token.

    Returns the payload dict on success. If hub is given, the token's
    hub claim must match it. Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != "hub_connection":
        raise TokenError("Not a hub connection token")
    if hub is not None and payload.get("hub") != hub:
        raise TokenError(f"Token is not valid for hub '{hub}'")
    return payload
