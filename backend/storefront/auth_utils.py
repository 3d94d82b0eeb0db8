"""
Storefront Session Cookie Utilities

The session cookie carries a signed JWT whose ``sub`` is the server-side
session token, so the raw token is never accepted unsigned.  The JWT is
re-signed on every allowed protected request, so its ``exp`` slides with
activity; the inactivity timeout itself lives server-side.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from starlette.requests import HTTPConnection
from starlette.responses import Response

from storefront.config import Settings


# ── JWT helpers ──────────────────────────────────────────────────────────────

def create_jwt(session_token: str, user_id: str, settings: Settings) -> str:
    """Create a signed JWT embedding the session token and user identity."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": session_token,
        "user_id": str(user_id),
        "exp": now + timedelta(hours=settings.JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, settings.SESSION_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_jwt(token: str, settings: Settings) -> dict | None:
    """
    Decode and validate a JWT.

    Returns the payload dictionary on success, or ``None`` if the token is
    expired, malformed, or has an invalid signature.
    """
    try:
        return jwt.decode(
            token,
            settings.SESSION_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.InvalidTokenError:
        return None


# ── Cookie helpers ───────────────────────────────────────────────────────────

def read_session_token(conn: HTTPConnection, settings: Settings) -> Optional[str]:
    """Return the verified session token from the request cookie, or ``None``."""
    cookie = conn.cookies.get(settings.SESSION_COOKIE_NAME)
    if not cookie:
        return None
    payload = decode_jwt(cookie, settings)
    if payload is None:
        return None
    return payload.get("sub") or None


def cookie_is_secure(conn: HTTPConnection, settings: Settings) -> bool:
    if settings.COOKIE_SECURE is not None:
        return settings.COOKIE_SECURE
    return conn.url.scheme == "https"


def session_cookie_header(value: str, settings: Settings, secure: bool) -> str:
    """Raw ``Set-Cookie`` value, for middleware that edits response headers."""
    max_age = settings.SESSION_TIMEOUT_MINUTES * 60
    header = (
        f"{settings.SESSION_COOKIE_NAME}={value}; path=/; Max-Age={max_age}; "
        "HttpOnly; SameSite=lax"
    )
    if secure:
        header += "; Secure"
    return header


def set_session_cookie(
    response: Response, value: str, settings: Settings, secure: bool
) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        value,
        max_age=settings.SESSION_TIMEOUT_MINUTES * 60,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings, secure: bool) -> None:
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
    )
