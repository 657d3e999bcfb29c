"""
Router for sealing memories and reading them back as their owner.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import public_origin
from database import get_db
from models.user import User
from routers.auth_scope import AuthContext, get_auth_context
from services.errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from services.secret_store import (
    SecretRecord,
    create_secret,
    get_secret_for_owner,
    list_secrets_for_owner,
)

router = APIRouter()
logger = logging.getLogger(__name__)

SECRET_NOT_FOUND = "Secret not found"


class CreateSecretRequest(BaseModel):
    content: Optional[str] = Field(default=None, max_length=20000)
    media_reference: Optional[str] = Field(default=None, max_length=512)
    delivery_at: Optional[datetime] = None


class SecretResponse(BaseModel):
    id: str
    owner_id: str
    content: Optional[str] = None
    media_reference: Optional[str] = None
    delivery_at: datetime
    created_at: datetime
    share_url: str


def share_url_for(secret_id: str) -> str:
    return f"{public_origin()}/reveal/{secret_id}"


def _serialize(record: SecretRecord) -> SecretResponse:
    return SecretResponse(
        id=record.id,
        owner_id=record.owner_id,
        content=record.content,
        media_reference=record.media_reference,
        delivery_at=record.delivery_at,
        created_at=record.created_at,
        share_url=share_url_for(record.id),
    )


async def _ensure_user(db: AsyncSession, auth: AuthContext) -> User:
    result = await db.execute(select(User).where(User.id == auth.user_id))
    user = result.scalar_one_or_none()
    if user:
        return user
    user = User(id=auth.user_id, email=auth.email or f"{auth.user_id}@local.invalid")
    db.add(user)
    await db.commit()
    return user


@router.post("", response_model=SecretResponse, status_code=201)
async def seal_secret(
    request: CreateSecretRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Seal a message and/or uploaded media until the delivery date."""
    try:
        await _ensure_user(db, auth)
        record = await create_secret(
            owner_id=auth.user_id,
            content=request.content,
            media_reference=request.media_reference,
            delivery_at=request.delivery_at,
            db=db,
        )
        return _serialize(record)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to seal secret for user=%s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to seal the memory.")


@router.get("", response_model=List[SecretResponse])
async def list_my_secrets(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Every memory the signed-in user has sealed, newest first."""
    try:
        records = await list_secrets_for_owner(owner_id=auth.user_id, db=db)
        return [_serialize(record) for record in records]
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except Exception:
        logger.exception("Failed to list secrets for user=%s", auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to load your memories.")


@router.get("/{secret_id}", response_model=SecretResponse)
async def get_my_secret(
    secret_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Owner view of a sealed memory, available before the delivery date."""
    try:
        record = await get_secret_for_owner(secret_id=secret_id, owner_id=auth.user_id, db=db)
        return _serialize(record)
    except AuthorizationError:
        logger.warning("User %s asked for a secret they do not own", auth.user_id)
        raise HTTPException(status_code=404, detail=SECRET_NOT_FOUND)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=SECRET_NOT_FOUND)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except Exception:
        logger.exception("Failed to get secret id=%s for user=%s", secret_id, auth.user_id)
        raise HTTPException(status_code=500, detail="Failed to load the memory.")
