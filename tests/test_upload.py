from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.models import AudioRecord
from app.models import User

MP3 = b"ID3" + b"\x01" * (2 * 1024 * 1024)


def upload_files(name="track.mp3", data=MP3, content_type="audio/mpeg"):
    return {"file": (name, data, content_type)}


def form(**overrides):
    fields = {"mood": "Chill", "environment": " Rainy Day ", "title": "Rain on glass"}
    fields.update(overrides)
    return {k: v for k, v in fields.items() if v is not None}


async def count_records(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count(AudioRecord.id)))


async def test_upload_creates_record_with_resolvable_url(
    client, make_user, auth_headers, storage, session_factory
):
    user = await make_user()

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(),
        data=form(tags="Rain, piano ,Rain", genre="Ambient", is_public="true"),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["mood"] == "chill"
    assert body["environment"] == "rainy day"
    assert body["genre"] == "ambient"
    assert body["tags"] == ["Rain", "piano"]
    assert body["is_public"] is True
    assert body["formatted_file_size"] == "2.0 MB"
    assert body["owner"] == {"id": user.id, "username": user.username}

    key = body["file_url"].removeprefix("/uploads/")
    assert storage.path_for(key).read_bytes() == MP3

    async with session_factory() as session:
        owner = await session.get(User, user.id)
        assert owner.total_uploads == 1


async def test_upload_title_defaults_to_file_name(client, make_user, auth_headers):
    user = await make_user()

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(name="Morning Walk.wav", content_type="audio/wav"),
        data=form(title=None),
    )

    assert response.status_code == 201
    assert response.json()["title"] == "Morning Walk"


async def test_upload_requires_authentication(client, storage):
    response = await client.post("/api/audio/upload", files=upload_files(), data=form())

    assert response.status_code == 401
    assert list(storage.root.iterdir()) == []


async def test_upload_without_file(client, make_user, auth_headers):
    user = await make_user()

    response = await client.post("/api/audio/upload", headers=auth_headers(user), data=form())

    assert response.status_code == 400
    assert response.json()["detail"] == "No audio file uploaded"


async def test_upload_missing_mood_and_environment(client, make_user, auth_headers, storage):
    user = await make_user()

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(),
        data={"title": "x", "environment": "  "},
    )

    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["errors"]}
    assert fields == {"mood", "environment"}
    assert list(storage.root.iterdir()) == []


@pytest.mark.parametrize(
    ("name", "content_type"),
    [("notes.txt", "audio/mpeg"), ("track.mp3", "text/plain"), ("video.mp4", "video/mp4")],
)
async def test_upload_rejects_non_audio(
    client, make_user, auth_headers, storage, name, content_type
):
    user = await make_user()

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(name=name, content_type=content_type),
        data=form(),
    )

    assert response.status_code == 400
    assert list(storage.root.iterdir()) == []


async def test_upload_too_large(client, make_user, auth_headers, storage, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 1024)
    user = await make_user()

    response = await client.post(
        "/api/audio/upload", headers=auth_headers(user), files=upload_files(), data=form()
    )

    assert response.status_code == 413
    assert list(storage.root.iterdir()) == []


async def test_upload_empty_file_is_removed_again(client, make_user, auth_headers, storage):
    user = await make_user()

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(data=b""),
        data=form(),
    )

    assert response.status_code == 400
    assert list(storage.root.iterdir()) == []


async def test_unknown_mood_compensates_stored_file(
    client, make_user, auth_headers, storage, session_factory
):
    user = await make_user()

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(),
        data=form(mood="euphoric"),
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "mood"
    assert list(storage.root.iterdir()) == []
    assert await count_records(session_factory) == 0


async def test_database_failure_compensates_stored_file(
    client, make_user, auth_headers, storage, session_factory, monkeypatch
):
    from sqlalchemy.ext.asyncio import AsyncSession

    user = await make_user()
    failing_commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("db down")))
    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    response = await client.post(
        "/api/audio/upload", headers=auth_headers(user), files=upload_files(), data=form()
    )

    monkeypatch.undo()
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    assert list(storage.root.iterdir()) == []
    assert await count_records(session_factory) == 0


async def test_failed_compensation_keeps_original_error(
    client, make_user, auth_headers, storage, monkeypatch
):
    user = await make_user()
    monkeypatch.setattr(storage, "remove", AsyncMock(side_effect=RuntimeError("gone")))

    response = await client.post(
        "/api/audio/upload",
        headers=auth_headers(user),
        files=upload_files(),
        data=form(environment="moon"),
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "environment"
    storage.remove.assert_awaited_once()
