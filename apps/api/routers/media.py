"""Media upload and signed media retrieval."""

from __future__ import annotations

import logging
import mimetypes
import os

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from config import settings
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.errors import NotFoundError, StorageError, ValidationError
from services.media_storage import MediaStorage, build_media_key, get_media_storage, verify_media_token

router = APIRouter()
logger = logging.getLogger(__name__)

UPLOAD_CHUNK_BYTES = 1024 * 1024


class MediaUploadResponse(BaseModel):
    media_reference: str
    file_name: str
    mime_type: str | None = None
    file_size_bytes: int


async def _read_capped(file: UploadFile, limit: int) -> bytes:
    chunks = []
    total_size = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > limit:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Max upload size is {limit // (1024 * 1024)}MB.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/upload", response_model=MediaUploadResponse)
async def upload_media(
    file: UploadFile = File(...),
    _rate_limit: None = Depends(rate_limit("media_upload", limit=60, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    storage: MediaStorage = Depends(get_media_storage),
):
    """Store a file in the caller's namespace and return its opaque media reference."""
    try:
        data = await _read_capped(file, int(settings.MEDIA_MAX_UPLOAD_BYTES))
    finally:
        await file.close()
    if not data:
        raise HTTPException(status_code=422, detail="Uploaded file is empty.")

    file_name = os.path.basename(file.filename or "upload")
    try:
        key = storage.store(build_media_key(auth.user_id, file_name), data)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StorageError:
        raise HTTPException(status_code=503, detail="Could not store the file. Try again.")

    logger.info("Stored media %s (%s bytes) for user=%s", key, len(data), auth.user_id)
    return MediaUploadResponse(
        media_reference=key,
        file_name=file_name,
        mime_type=file.content_type or None,
        file_size_bytes=len(data),
    )


@router.get("/object")
async def get_media_object(
    token: str = Query(..., min_length=1),
    storage: MediaStorage = Depends(get_media_storage),
):
    """Serve a media object named by a signed, expiring token."""
    try:
        key = verify_media_token(token)
        path = storage.open(key)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Media not found")

    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type, filename=path.name)
