"""Owner-scoped write and read paths for sealed secrets.

Every function takes the caller's principal explicitly. Nothing here returns a
secret to an anonymous caller; anonymous reads go through services.disclosure.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.secret import Secret
from services.crypto import decrypt_content, encrypt_content
from services.errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from services.media_storage import is_valid_media_key, media_key_owner

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3


@dataclass(frozen=True)
class SecretRecord:
    id: str
    owner_id: str
    content: Optional[str]
    media_reference: Optional[str]
    delivery_at: datetime
    created_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_secret_id(value: object) -> Optional[str]:
    """Return the canonical form of a secret id, or None if it is not one."""
    try:
        return str(uuid.UUID(str(value or "").strip()))
    except ValueError:
        return None


def new_secret_id() -> str:
    return str(uuid.uuid4())


def to_record(row: Secret) -> SecretRecord:
    content = decrypt_content(row.content_encrypted) if row.content_encrypted is not None else None
    return SecretRecord(
        id=row.id,
        owner_id=row.owner_id,
        content=content,
        media_reference=row.media_reference,
        delivery_at=as_utc(row.delivery_at),
        created_at=as_utc(row.created_at),
    )


async def owner_scope(db: AsyncSession, owner_id: str) -> None:
    """Bind the caller to the transaction so the PostgreSQL row policy applies."""
    bind = db.bind
    if bind is None or bind.dialect.name != "postgresql":
        return
    await db.execute(
        text("SELECT set_config('app.principal_id', :principal_id, true)"),
        {"principal_id": owner_id},
    )


def _normalize_payload(
    owner_id: str,
    content: Optional[str],
    media_reference: Optional[str],
    delivery_at: Optional[datetime],
):
    if not owner_id:
        raise ValidationError("You must be signed in to seal a memory.")

    if content is not None and not str(content).strip():
        content = None
    media_reference = str(media_reference).strip() if media_reference else None

    if content is None and media_reference is None:
        raise ValidationError("Please add a message or upload a file.")

    if media_reference is not None:
        if not is_valid_media_key(media_reference) or media_key_owner(media_reference) != owner_id:
            raise ValidationError("media_reference must be a key returned by your own upload.")

    if delivery_at is None:
        raise ValidationError("Please select a delivery date.")
    if not isinstance(delivery_at, datetime):
        raise ValidationError("delivery_at must be a timestamp.")

    try:
        delivery_at = as_utc(delivery_at)
    except (OverflowError, ValueError) as exc:
        raise ValidationError("delivery_at is out of range.") from exc

    return content, media_reference, delivery_at


async def _id_taken(db: AsyncSession, secret_id: str) -> bool:
    try:
        result = await db.execute(select(Secret.id).where(Secret.id == secret_id))
    except SQLAlchemyError as exc:
        raise StorageError("Could not seal the memory. Please try again.") from exc
    return result.scalar_one_or_none() is not None


async def create_secret(
    *,
    owner_id: str,
    content: Optional[str],
    media_reference: Optional[str],
    delivery_at: Optional[datetime],
    db: AsyncSession,
) -> SecretRecord:
    """Seal a new secret. Each attempt is a single INSERT committed on its own."""
    content, media_reference, delivery_at = _normalize_payload(
        owner_id, content, media_reference, delivery_at
    )
    content_encrypted = encrypt_content(content) if content is not None else None

    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        secret_id = new_secret_id()
        row = Secret(
            id=secret_id,
            owner_id=owner_id,
            content_encrypted=content_encrypted,
            media_reference=media_reference,
            delivery_at=delivery_at,
            created_at=utc_now(),
        )
        db.add(row)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            if not await _id_taken(db, secret_id):
                logger.exception("Integrity error sealing secret for owner=%s", owner_id)
                raise StorageError("Could not seal the memory. Please try again.") from exc
            logger.warning("Secret id collision on attempt %s; retrying with a new id", attempt)
            continue
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to insert secret for owner=%s", owner_id)
            raise StorageError("Could not seal the memory. Please try again.") from exc

        logger.info("Sealed secret id=%s owner=%s", row.id, owner_id)
        return SecretRecord(
            id=row.id,
            owner_id=owner_id,
            content=content,
            media_reference=media_reference,
            delivery_at=delivery_at,
            created_at=as_utc(row.created_at),
        )

    raise StorageError("Could not allocate a unique secret id.")


async def get_secret_for_owner(*, secret_id: str, owner_id: str, db: AsyncSession) -> SecretRecord:
    """Full read of one secret, restricted to its owner."""
    canonical_id = parse_secret_id(secret_id)
    if canonical_id is None:
        raise NotFoundError(reason="malformed")

    try:
        await owner_scope(db, owner_id)
        result = await db.execute(select(Secret).where(Secret.id == canonical_id))
    except SQLAlchemyError as exc:
        logger.exception("Failed to load secret id=%s", canonical_id)
        raise StorageError("Could not load the memory.") from exc

    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError(reason="absent")
    if row.owner_id != owner_id:
        raise AuthorizationError(f"Secret {canonical_id} is not owned by {owner_id}")
    return to_record(row)


async def list_secrets_for_owner(*, owner_id: str, db: AsyncSession) -> List[SecretRecord]:
    """All secrets sealed by the owner, newest first."""
    try:
        await owner_scope(db, owner_id)
        result = await db.execute(
            select(Secret)
            .where(Secret.owner_id == owner_id)
            .order_by(Secret.created_at.desc())
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to list secrets for owner=%s", owner_id)
        raise StorageError("Could not load your memories.") from exc
    return [to_record(row) for row in result.scalars().all()]
