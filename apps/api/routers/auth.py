"""
Authentication router for passwordless email-link sign-in.
"""

from datetime import datetime, timezone
import logging
from typing import Optional
from urllib.parse import urlencode
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import public_origin, settings
from database import get_db
from models.user import User
from routers.auth_scope import AuthContext, get_auth_context, get_optional_auth_context
from routers.rate_limit import rate_limit
from services.mailer import send_magic_link
from services.session_token import (
    create_magic_link_token,
    create_session_token,
    decode_magic_link_token,
    normalize_email,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class MagicLinkRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)


class MagicLinkResponse(BaseModel):
    message: str


class VerifyMagicLinkRequest(BaseModel):
    token: str = Field(min_length=1)


class SessionResponse(BaseModel):
    user_id: str
    email: str
    session_token: str
    session_expires_at: int


class SessionStatusResponse(BaseModel):
    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None


class CurrentUserResponse(BaseModel):
    user_id: str
    email: str
    created_at: Optional[str] = None
    last_login_at: Optional[str] = None


@router.post("/magic-link", response_model=MagicLinkResponse, status_code=202)
async def request_magic_link(
    request: MagicLinkRequest,
    _rate_limit: None = Depends(
        rate_limit("magic_link", limit=settings.MAGIC_LINK_RATE_LIMIT_PER_HOUR, window_seconds=3600)
    ),
):
    """Email a short-lived sign-in link. The response does not reveal whether the address is known."""
    email = normalize_email(request.email)
    if not email:
        raise HTTPException(status_code=422, detail="Enter a valid email address.")

    magic = create_magic_link_token(email)
    link = f"{public_origin()}/auth/callback?{urlencode({'token': magic['token']})}"
    try:
        await send_magic_link(email, link)
    except Exception:
        logger.exception("Failed to deliver magic link to %s", email)
        raise HTTPException(status_code=503, detail="Could not send the sign-in email. Try again later.")

    return MagicLinkResponse(message="Check your email for the magic link!")


@router.post("/verify", response_model=SessionResponse)
async def verify_magic_link(
    request: VerifyMagicLinkRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a verified magic-link token for a backend session."""
    try:
        email = decode_magic_link_token(request.token)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    now = datetime.now(timezone.utc)
    if not user:
        user = User(id=str(uuid.uuid4()), email=email, created_at=now)
        db.add(user)
    user.last_login_at = now
    await db.commit()

    session = create_session_token(user.id, user.email)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session["token"],
        max_age=max(int(settings.JWT_EXPIRATION_HOURS), 1) * 3600,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    logger.info("Session issued for user=%s", user.id)

    return SessionResponse(
        user_id=user.id,
        email=user.email,
        session_token=session["token"],
        session_expires_at=session["expires_at"],
    )


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the signed-in user's profile."""
    result = await db.execute(select(User).where(User.id == auth.user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return CurrentUserResponse(
        user_id=user.id,
        email=user.email,
        created_at=user.created_at.isoformat() if user.created_at else None,
        last_login_at=user.last_login_at.isoformat() if user.last_login_at else None,
    )


@router.get("/session", response_model=SessionStatusResponse)
async def get_session_status(auth: Optional[AuthContext] = Depends(get_optional_auth_context)):
    """Report the current principal without failing for anonymous callers."""
    if auth is None:
        return SessionStatusResponse(authenticated=False)
    return SessionStatusResponse(authenticated=True, user_id=auth.user_id, email=auth.email)


@router.post("/logout")
async def logout(response: Response, _auth: AuthContext = Depends(get_auth_context)):
    """Clear the session cookie. Bearer tokens simply expire."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Logged out successfully"}
