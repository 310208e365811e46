"""Session identity helpers.

Users sign in through the external auth frontend, which issues HS256
session tokens whose subject is the user id. This module reads them back
so request handlers can check who is calling.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class SessionMismatchError(Exception):
    """No authenticated session, or it belongs to a different user."""

    pass


def _secret_key() -> str:
    if not settings.SESSION_SECRET_KEY:
        raise ValueError("SESSION_SECRET_KEY is not configured")
    return settings.SESSION_SECRET_KEY


def create_session_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a session token for a user."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    return jwt.encode({"sub": user_id, "exp": expire}, _secret_key(), algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[str]:
    """Return the user id carried by a token, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, _secret_key(), algorithms=[ALGORITHM])
    except JWTError:
        logger.info("Rejected invalid or expired session token")
        return None
    return payload.get("sub")


def get_session_user_id(request: Request) -> Optional[str]:
    """FastAPI dependency: the authenticated user id, or None.

    Reads ``Authorization: Bearer <token>`` first, then the session cookie
    (browser redirects only carry the cookie).
    """
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    if not settings.SESSION_SECRET_KEY:
        logger.warning("Session token presented but SESSION_SECRET_KEY is not configured")
        return None
    return decode_session_token(token)


def verify_session_user(session_user_id: Optional[str], expected_user_id: str) -> str:
    """Ensure the session belongs to ``expected_user_id``.

    Raises:
        SessionMismatchError: If there is no session or the ids differ.
    """
    if not session_user_id:
        raise SessionMismatchError("No authenticated user")
    if session_user_id != expected_user_id:
        logger.error(
            "User mismatch: session=%s callback=%s", session_user_id, expected_user_id
        )
        raise SessionMismatchError("User mismatch")
    return session_user_id
