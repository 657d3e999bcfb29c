"""
Public disclosure endpoint behind share links.
"""

import logging
from datetime import datetime
from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.rate_limit import rate_limit
from services.disclosure import reveal_secret, utc_now
from services.errors import StorageError
from services.media_storage import resolve_public_url

router = APIRouter()
logger = logging.getLogger(__name__)


class LockedSecretResponse(BaseModel):
    status: Literal["locked"] = "locked"
    id: str
    delivery_at: datetime
    created_at: datetime
    seconds_remaining: int


class UnlockedSecretResponse(BaseModel):
    status: Literal["unlocked"] = "unlocked"
    id: str
    delivery_at: datetime
    created_at: datetime
    content: Optional[str] = None
    media_reference: Optional[str] = None
    media_url: Optional[str] = None


@router.get("/{secret_id}", response_model=Union[LockedSecretResponse, UnlockedSecretResponse])
async def reveal(
    secret_id: str,
    request: Request,
    _rate_limit: None = Depends(
        rate_limit("reveal", limit=settings.REVEAL_RATE_LIMIT_PER_MINUTE, window_seconds=60)
    ),
    db: AsyncSession = Depends(get_db),
):
    """
    Open a time capsule by its share-link id.

    Returns a countdown view while locked and the full payload once the
    delivery date has passed. Unknown and malformed ids both yield 404.
    The evaluation instant is always the server clock.
    """
    now = utc_now()
    try:
        disclosure = await reveal_secret(secret_id, db, now=now)
    except StorageError:
        raise HTTPException(status_code=503, detail="Could not open the time capsule. Try again.")
    except Exception:
        logger.exception("Failed to reveal secret id=%s", secret_id)
        raise HTTPException(status_code=500, detail="Failed to open the time capsule.")

    if not disclosure.is_found:
        raise HTTPException(status_code=404, detail="Secret not found")

    if disclosure.is_locked:
        return LockedSecretResponse(
            id=disclosure.secret_id,
            delivery_at=disclosure.delivery_at,
            created_at=disclosure.created_at,
            seconds_remaining=disclosure.seconds_remaining(now),
        )

    media_url = None
    if disclosure.media_reference:
        media_url = resolve_public_url(disclosure.media_reference, str(request.base_url))
    return UnlockedSecretResponse(
        id=disclosure.secret_id,
        delivery_at=disclosure.delivery_at,
        created_at=disclosure.created_at,
        content=disclosure.content,
        media_reference=disclosure.media_reference,
        media_url=media_url,
    )
