"""Local object store for sealed media and short-lived signed media URLs."""

from __future__ import annotations

import logging
import os
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import urlencode

from jose import JWTError, jwt

from config import settings
from services.errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

MEDIA_TOKEN_TYPE = "tc_media"
_KEY_SEGMENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def _sanitize_suffix(filename: str | None) -> str:
    suffix = Path(os.path.basename(filename or "")).suffix.lower()
    if not suffix or not re.fullmatch(r"\.[a-z0-9]{1,10}", suffix):
        return ""
    return suffix


def build_media_key(owner_id: str, filename: str | None) -> str:
    """Return an unguessable key in the owner's namespace, e.g. ``<owner>/<hex>.png``."""
    if not owner_id:
        raise ValidationError("You must be signed in to upload media.")
    return f"{owner_id}/{uuid.uuid4().hex}{_sanitize_suffix(filename)}"


def is_valid_media_key(key: str | None) -> bool:
    parts = str(key or "").split("/")
    if len(parts) != 2:
        return False
    return all(_KEY_SEGMENT.match(part) and ".." not in part for part in parts)


def media_key_owner(key: str) -> str:
    return key.split("/", 1)[0]


class MediaStorage:
    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def _path_for(self, key: str) -> Path:
        if not is_valid_media_key(key):
            raise NotFoundError("Media not found", reason="malformed")
        root = self.base_path.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            raise NotFoundError("Media not found", reason="malformed")
        return path

    def store(self, key: str, data: bytes) -> str:
        if not is_valid_media_key(key):
            raise ValidationError("Media key is not valid.")
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("xb") as out:
                out.write(data)
        except FileExistsError as exc:
            raise StorageError(f"Media key already in use: {key}") from exc
        except OSError as exc:
            logger.exception("Could not write media object %s", key)
            raise StorageError("Could not store media.") from exc
        return key

    def open(self, key: str) -> Path:
        path = self._path_for(key)
        if not path.is_file():
            raise NotFoundError("Media not found", reason="absent")
        return path


def get_media_storage() -> MediaStorage:
    return MediaStorage(Path(settings.MEDIA_STORAGE_DIR))


def create_media_token(key: str, ttl_seconds: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = max(int(ttl_seconds or settings.MEDIA_URL_TTL_SECONDS or 3600), 1)
    claims = {
        "sub": key,
        "type": MEDIA_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_media_token(token: str) -> str:
    """Return the media key a token grants access to, or raise NotFoundError."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise NotFoundError("Media not found", reason="bad_token") from exc
    key = str(payload.get("sub", ""))
    if payload.get("type") != MEDIA_TOKEN_TYPE or not is_valid_media_key(key):
        raise NotFoundError("Media not found", reason="bad_token")
    return key


def resolve_public_url(key: str, base_url: str) -> str:
    """
    Turn a media key into a fetchable URL.

    Only call this for payloads that have already been disclosed; the URL is a
    bearer credential until it expires.
    """
    query = urlencode({"token": create_media_token(key)})
    return f"{base_url.rstrip('/')}/media/object?{query}"
