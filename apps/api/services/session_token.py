"""Signed token helpers for magic-link sign-in and backend sessions."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "tc_session"
MAGIC_LINK_TOKEN_TYPE = "tc_magic_link"


def _decode(token: str, expected_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired token.") from exc

    token_type = str(payload.get("type", "")).strip()
    if token_type != expected_type:
        raise ValueError("Invalid token type.")

    subject = str(payload.get("sub", "")).strip()
    if not subject:
        raise ValueError("Token missing subject.")

    return payload


def normalize_email(value: Any) -> str:
    """Lowercase and trim an email address; return empty string if it is not one."""
    email = str(value or "").strip().lower()
    local, _, domain = email.partition("@")
    if not local or "." not in domain or " " in email:
        return ""
    return email


def create_magic_link_token(email: str) -> Dict[str, Any]:
    """Create a short-lived token proving control of an email address."""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=max(int(settings.MAGIC_LINK_TTL_MINUTES or 15), 1))
    claims = {
        "sub": email,
        "type": MAGIC_LINK_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "token": token,
        "expires_at": int(expires_at.timestamp()),
    }


def decode_magic_link_token(token: str) -> str:
    """Return the verified email carried by a magic-link token."""
    payload = _decode(token, MAGIC_LINK_TOKEN_TYPE)
    email = normalize_email(payload.get("sub"))
    if not email:
        raise ValueError("Magic link does not carry a valid email.")
    return email


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """Create a signed session token payload for API authentication."""
    now = datetime.now(timezone.utc)
    ttl_hours = int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24)
    expires_at = now + timedelta(hours=max(ttl_hours, 1))
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if email:
        claims["email"] = email

    token = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "token": token,
        "expires_at": int(expires_at.timestamp()),
    }


def decode_session_token(token: str) -> Dict[str, Any]:
    """Decode and validate a signed session token."""
    try:
        return _decode(token, SESSION_TOKEN_TYPE)
    except ValueError as exc:
        raise ValueError("Invalid or expired session token.") from exc
