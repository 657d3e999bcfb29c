"""Disclosure gate: the only path from a share-link id to secret content.

The gate reads the row with the application's own database role, which the
row policy on ``secrets`` does not restrict, and redacts the payload itself.
Callers only ever see a ``Disclosure``; the row never leaves this module.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.secret import Secret
from services.errors import NotFoundError, StorageError
from services.secret_store import SecretRecord, as_utc, parse_secret_id, to_record, utc_now

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
LOCKED = "locked"
UNLOCKED = "unlocked"


@dataclass(frozen=True)
class Disclosure:
    status: str
    secret_id: Optional[str] = None
    delivery_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    content: Optional[str] = None
    media_reference: Optional[str] = None
    # Why a lookup came back empty. Logged, never sent to the caller.
    reason: Optional[str] = field(default=None, compare=False, repr=False)

    @classmethod
    def not_found(cls, reason: str) -> "Disclosure":
        return cls(status=NOT_FOUND, reason=reason)

    @classmethod
    def locked(cls, secret_id: str, delivery_at: datetime, created_at: datetime) -> "Disclosure":
        return cls(
            status=LOCKED,
            secret_id=secret_id,
            delivery_at=as_utc(delivery_at),
            created_at=as_utc(created_at),
        )

    @classmethod
    def unlocked(cls, record: SecretRecord) -> "Disclosure":
        return cls(
            status=UNLOCKED,
            secret_id=record.id,
            delivery_at=record.delivery_at,
            created_at=record.created_at,
            content=record.content,
            media_reference=record.media_reference,
        )

    @property
    def is_found(self) -> bool:
        return self.status != NOT_FOUND

    @property
    def is_locked(self) -> bool:
        return self.status == LOCKED

    def seconds_remaining(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until unlock, rounded up; 0 once unlocked."""
        if self.status != LOCKED or self.delivery_at is None:
            return 0
        delta = (self.delivery_at - as_utc(now or utc_now())).total_seconds()
        return max(math.ceil(delta), 0)


def is_locked_at(delivery_at: datetime, now: datetime) -> bool:
    """A secret stays locked strictly before its delivery instant."""
    return as_utc(now) < as_utc(delivery_at)


async def reveal_secret(
    secret_id: str,
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Disclosure:
    """
    Decide what an anonymous link-holder may see of a secret.

    Args:
        secret_id: Id taken from the share link. Malformed ids are answered
            exactly like unknown ones.
        db: Session bound to the application role.
        now: Evaluation instant. Defaults to the server clock; HTTP handlers
            never pass a caller-supplied value.

    Returns:
        A not_found, locked (metadata only) or unlocked (full payload) disclosure.
    """
    canonical_id = parse_secret_id(secret_id)
    if canonical_id is None:
        logger.debug("Reveal miss: malformed id")
        return Disclosure.not_found("malformed")

    try:
        result = await db.execute(select(Secret).where(Secret.id == canonical_id))
    except SQLAlchemyError as exc:
        logger.exception("Failed to look up secret id=%s", canonical_id)
        raise StorageError("Could not open the time capsule.") from exc

    row = result.scalar_one_or_none()
    if row is None:
        logger.debug("Reveal miss: absent id=%s", canonical_id)
        return Disclosure.not_found("absent")

    evaluated_at = now or utc_now()
    if is_locked_at(row.delivery_at, evaluated_at):
        # Metadata only; the ciphertext is never decrypted for a locked secret.
        return Disclosure.locked(row.id, row.delivery_at, row.created_at)
    return Disclosure.unlocked(to_record(row))


def require_disclosed(disclosure: Disclosure) -> Disclosure:
    """Raise NotFoundError for a miss so callers can use exception flow."""
    if not disclosure.is_found:
        raise NotFoundError(reason=disclosure.reason)
    return disclosure
