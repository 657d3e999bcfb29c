"""Authentication dependencies for API user scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


def _session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header wins; the session cookie set at sign-in is the fallback."""
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def _context_from_token(token: str) -> AuthContext:
    payload = decode_session_token(token)
    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
    )


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve authenticated user from Bearer session token or session cookie."""
    token = _session_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Missing session token.")

    try:
        return _context_from_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


async def get_optional_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> Optional[AuthContext]:
    """Current principal, or None for anonymous and invalid sessions."""
    token = _session_token(request, credentials)
    if not token:
        return None
    try:
        return _context_from_token(token)
    except ValueError:
        return None
