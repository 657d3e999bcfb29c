from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from services.media_storage import MediaStorage, get_media_storage
from services.session_token import create_session_token


OWNER_ID = "owner-user"
OTHER_ID = "other-user"
OWNER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(OWNER_ID, 'owner@example.com')['token']}"}
OTHER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(OTHER_ID, 'other@example.com')['token']}"}
NEVER_ISSUED_ID = "0b6f7f3a-9a57-4a8e-a2f4-5b1f4f0c9d11"


def _iso(value: datetime) -> str:
    return value.isoformat()


@pytest_asyncio.fixture
async def capsule_client(tmp_path):
    db_path = tmp_path / "secrets_api.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    storage = MediaStorage(tmp_path / "media")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_media_storage, None)
    await engine.dispose()


async def _seal(client, headers=OWNER_AUTH_HEADER, **body):
    response = await client.post("/secrets", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_sealing_requires_a_session(capsule_client):
    response = await capsule_client.post(
        "/secrets",
        json={"content": "hi", "delivery_at": _iso(datetime.now(timezone.utc) + timedelta(days=1))},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_seal_returns_record_and_share_link(capsule_client):
    delivery_at = datetime(2031, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    payload = await _seal(capsule_client, content="hi future me", delivery_at=_iso(delivery_at))

    assert payload["owner_id"] == OWNER_ID
    assert payload["content"] == "hi future me"
    assert payload["media_reference"] is None
    assert datetime.fromisoformat(payload["delivery_at"]) == delivery_at
    assert payload["share_url"].endswith(f"/reveal/{payload['id']}")


@pytest.mark.asyncio
async def test_text_capsule_locked_then_unlocked(capsule_client):
    delivery_at = datetime.now(timezone.utc) + timedelta(seconds=10)
    payload = await _seal(capsule_client, content="hi future me", delivery_at=_iso(delivery_at))

    locked = await capsule_client.get(f"/reveal/{payload['id']}")
    assert locked.status_code == 200
    locked_body = locked.json()
    assert locked_body["status"] == "locked"
    assert locked_body["id"] == payload["id"]
    assert datetime.fromisoformat(locked_body["delivery_at"]) == delivery_at
    assert 0 < locked_body["seconds_remaining"] <= 10
    assert "content" not in locked_body
    assert "media_reference" not in locked_body
    assert "media_url" not in locked_body

    with patch("routers.reveal.utc_now", return_value=delivery_at + timedelta(seconds=1)):
        unlocked = await capsule_client.get(f"/reveal/{payload['id']}")
    assert unlocked.status_code == 200
    unlocked_body = unlocked.json()
    assert unlocked_body["status"] == "unlocked"
    assert unlocked_body["content"] == "hi future me"
    assert unlocked_body["media_url"] is None


@pytest.mark.asyncio
async def test_media_only_capsule_with_past_date_opens_immediately(capsule_client):
    upload = await capsule_client.post(
        "/media/upload",
        files={"file": ("abc.png", b"\x89PNG-fake-bytes", "image/png")},
        headers=OWNER_AUTH_HEADER,
    )
    assert upload.status_code == 200, upload.text
    media_reference = upload.json()["media_reference"]
    assert media_reference.startswith(f"{OWNER_ID}/")
    assert media_reference.endswith(".png")
    assert upload.json()["file_name"] == "abc.png"
    assert upload.json()["mime_type"] == "image/png"
    assert upload.json()["file_size_bytes"] == len(b"\x89PNG-fake-bytes")

    payload = await _seal(
        capsule_client,
        media_reference=media_reference,
        delivery_at=_iso(datetime.now(timezone.utc) - timedelta(seconds=1)),
    )

    revealed = await capsule_client.get(f"/reveal/{payload['id']}")
    assert revealed.status_code == 200
    body = revealed.json()
    assert body["status"] == "unlocked"
    assert body["content"] is None
    assert body["media_reference"] == media_reference
    assert "/media/object?token=" in body["media_url"]

    media = await capsule_client.get(body["media_url"])
    assert media.status_code == 200
    assert media.content == b"\x89PNG-fake-bytes"


@pytest.mark.asyncio
async def test_locked_capsule_never_exposes_media(capsule_client):
    upload = await capsule_client.post(
        "/media/upload",
        files={"file": ("clip.mp4", b"fake-video", "video/mp4")},
        headers=OWNER_AUTH_HEADER,
    )
    media_reference = upload.json()["media_reference"]
    payload = await _seal(
        capsule_client,
        content="watch this later",
        media_reference=media_reference,
        delivery_at=_iso(datetime.now(timezone.utc) + timedelta(days=365)),
    )

    body = (await capsule_client.get(f"/reveal/{payload['id']}")).json()
    assert body["status"] == "locked"
    assert media_reference not in str(body)
    assert "watch this later" not in str(body)


@pytest.mark.asyncio
async def test_capsule_without_message_or_media_is_rejected(capsule_client):
    response = await capsule_client.post(
        "/secrets",
        json={"content": "", "delivery_at": _iso(datetime.now(timezone.utc) + timedelta(days=1))},
        headers=OWNER_AUTH_HEADER,
    )
    assert response.status_code == 422
    assert "message or upload" in response.json()["detail"]

    listing = await capsule_client.get("/secrets", headers=OWNER_AUTH_HEADER)
    assert listing.status_code == 200
    assert listing.json() == []


@pytest.mark.asyncio
async def test_missing_or_invalid_delivery_date_is_rejected(capsule_client):
    missing = await capsule_client.post("/secrets", json={"content": "hi"}, headers=OWNER_AUTH_HEADER)
    invalid = await capsule_client.post(
        "/secrets", json={"content": "hi", "delivery_at": "next tuesday"}, headers=OWNER_AUTH_HEADER
    )

    assert missing.status_code == 422
    assert "delivery date" in missing.json()["detail"]
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_delivery_date_that_overflows_utc_is_rejected(capsule_client):
    response = await capsule_client.post(
        "/secrets",
        json={"content": "hi", "delivery_at": "0001-01-01T00:00:00+05:00"},
        headers=OWNER_AUTH_HEADER,
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "delivery_at is out of range."


@pytest.mark.asyncio
async def test_unknown_and_malformed_ids_look_the_same(capsule_client):
    await _seal(capsule_client, content="exists", delivery_at=_iso(datetime.now(timezone.utc)))

    unknown = await capsule_client.get(f"/reveal/{NEVER_ISSUED_ID}")
    malformed = await capsule_client.get("/reveal/definitely-not-an-id")

    assert unknown.status_code == malformed.status_code == 404
    assert unknown.json() == malformed.json() == {"detail": "Secret not found"}


@pytest.mark.asyncio
async def test_reveal_ignores_client_supplied_time(capsule_client):
    payload = await _seal(
        capsule_client,
        content="not yet",
        delivery_at=_iso(datetime.now(timezone.utc) + timedelta(days=1)),
    )

    response = await capsule_client.get(
        f"/reveal/{payload['id']}",
        params={"now": _iso(datetime.now(timezone.utc) + timedelta(days=30))},
    )
    assert response.json()["status"] == "locked"


@pytest.mark.asyncio
async def test_owner_can_read_locked_capsule_but_others_get_not_found(capsule_client):
    payload = await _seal(
        capsule_client,
        content="for my eyes",
        delivery_at=_iso(datetime.now(timezone.utc) + timedelta(days=10)),
    )

    mine = await capsule_client.get(f"/secrets/{payload['id']}", headers=OWNER_AUTH_HEADER)
    theirs = await capsule_client.get(f"/secrets/{payload['id']}", headers=OTHER_AUTH_HEADER)
    unknown = await capsule_client.get(f"/secrets/{NEVER_ISSUED_ID}", headers=OTHER_AUTH_HEADER)

    assert mine.status_code == 200
    assert mine.json()["content"] == "for my eyes"
    assert theirs.status_code == unknown.status_code == 404
    assert theirs.json() == unknown.json()


@pytest.mark.asyncio
async def test_listing_is_scoped_to_the_signed_in_owner(capsule_client):
    delivery_at = _iso(datetime.now(timezone.utc) + timedelta(days=1))
    first = await _seal(capsule_client, content="first", delivery_at=delivery_at)
    second = await _seal(capsule_client, content="second", delivery_at=delivery_at)
    await _seal(capsule_client, headers=OTHER_AUTH_HEADER, content="not mine", delivery_at=delivery_at)

    listing = await capsule_client.get("/secrets", headers=OWNER_AUTH_HEADER)

    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_sealing_with_someone_elses_media_is_rejected(capsule_client):
    upload = await capsule_client.post(
        "/media/upload",
        files={"file": ("theirs.png", b"other-bytes", "image/png")},
        headers=OTHER_AUTH_HEADER,
    )
    response = await capsule_client.post(
        "/secrets",
        json={
            "media_reference": upload.json()["media_reference"],
            "delivery_at": _iso(datetime.now(timezone.utc)),
        },
        headers=OWNER_AUTH_HEADER,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_media_object_requires_a_valid_token(capsule_client):
    missing = await capsule_client.get("/media/object")
    forged = await capsule_client.get("/media/object", params={"token": "not-a-token"})
    session_token = await capsule_client.get(
        "/media/object", params={"token": OWNER_AUTH_HEADER["Authorization"].split(" ", 1)[1]}
    )

    assert missing.status_code == 422
    assert forged.status_code == 404
    assert session_token.status_code == 404


@pytest.mark.asyncio
async def test_upload_rejects_empty_and_oversized_files(capsule_client):
    empty = await capsule_client.post(
        "/media/upload",
        files={"file": ("empty.txt", b"", "text/plain")},
        headers=OWNER_AUTH_HEADER,
    )
    with patch("routers.media.settings.MEDIA_MAX_UPLOAD_BYTES", 8):
        oversized = await capsule_client.post(
            "/media/upload",
            files={"file": ("big.bin", b"0123456789", "application/octet-stream")},
            headers=OWNER_AUTH_HEADER,
        )

    assert empty.status_code == 422
    assert oversized.status_code == 413
