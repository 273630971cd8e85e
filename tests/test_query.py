from datetime import UTC
from datetime import datetime
from datetime import timedelta

import pytest

from app.core.errors import AudioNotFoundError
from app.core.errors import AudioValidationError
from app.schemas import PlaylistQuery
from audio.get import format_duration
from audio.get import format_file_size
from audio.get import get_trending
from audio.get import get_visible_audio
from audio.get import playlist
from audio.get import search_audio


@pytest.mark.parametrize(
    ("seconds", "expected"), [(None, "0:00"), (0, "0:00"), (59.9, "0:59"), (185.4, "3:05")]
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (1572864, "1.5 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


async def test_pagination_metadata(db, storage, make_user, make_audio):
    owner = await make_user()
    for i in range(25):
        await make_audio(owner, title=f"Clip {i}", mood="focus", environment="office")

    page = await search_audio(db, storage, None, mood="focus", page=2, limit=10)

    assert len(page.items) == 10
    assert page.total == 25
    assert page.total_pages == 3
    assert page.has_next is True
    assert page.has_prev is True

    last = await search_audio(db, storage, None, mood="focus", page=3, limit=10)
    assert len(last.items) == 5
    assert last.has_next is False


async def test_empty_result_has_zero_pages(db, storage):
    page = await search_audio(db, storage, None, mood="angry")
    assert page.items == []
    assert page.total_pages == 0
    assert page.has_next is False
    assert page.has_prev is False


async def test_filters_are_a_conjunction(db, storage, make_user, make_audio):
    owner = await make_user()
    match = await make_audio(owner, mood="calm", environment="night", genre="jazz")
    await make_audio(owner, mood="calm", environment="office", genre="jazz")
    await make_audio(owner, mood="happy", environment="night", genre="jazz")
    await make_audio(owner, mood="calm", environment="night", genre="rock")

    page = await search_audio(db, storage, None, mood="calm", environment="night", genre="jazz")

    assert [item.id for item in page.items] == [match.id]


async def test_text_search_covers_title_tags_and_artist(db, storage, make_user, make_audio):
    owner = await make_user()
    by_title = await make_audio(owner, title="Late Night Drive")
    by_tag = await make_audio(owner, title="Untitled", tags=["drive", "synth"])
    by_artist = await make_audio(owner, title="Other", artist="The Drivers")
    await make_audio(owner, title="Unrelated")

    page = await search_audio(db, storage, None, text="DRIVE")

    assert {item.id for item in page.items} == {by_title.id, by_tag.id, by_artist.id}


async def test_text_search_matches_non_ascii_tags(db, storage, make_user, make_audio):
    owner = await make_user()
    cafe = await make_audio(owner, title="Morning", tags=["Café", "jazz"])
    await make_audio(owner, title="Evening", tags=["cafe"])

    page = await search_audio(db, storage, None, text="café")

    assert [item.id for item in page.items] == [cafe.id]
    assert page.items[0].tags == ["Café", "jazz"]


@pytest.mark.parametrize("text", ['", "', '["', "]"])
async def test_text_search_ignores_tag_list_syntax(db, storage, make_user, make_audio, text):
    owner = await make_user()
    await make_audio(owner, title="Two tags", tags=["x", "y"])

    page = await search_audio(db, storage, None, text=text)

    assert page.total == 0


async def test_text_search_treats_wildcards_literally(db, storage, make_user, make_audio):
    owner = await make_user()
    await make_audio(owner, title="100% focus")
    await make_audio(owner, title="1000 focus")

    page = await search_audio(db, storage, None, text="100%")

    assert [item.title for item in page.items] == ["100% focus"]


async def test_visibility(db, storage, make_user, make_audio):
    owner = await make_user("owner")
    other = await make_user("other")
    public = await make_audio(owner, is_public=True)
    private = await make_audio(owner, is_public=False)
    await make_audio(owner, is_public=True, is_active=False)

    anonymous = await search_audio(db, storage, None)
    as_other = await search_audio(db, storage, other)
    as_owner = await search_audio(db, storage, owner)

    assert {i.id for i in anonymous.items} == {public.id}
    assert {i.id for i in as_other.items} == {public.id}
    assert {i.id for i in as_owner.items} == {public.id, private.id}

    with pytest.raises(AudioNotFoundError):
        await get_visible_audio(db, private.id, other)
    with pytest.raises(AudioNotFoundError):
        await get_visible_audio(db, 9999, owner)
    assert (await get_visible_audio(db, private.id, owner)).id == private.id


async def test_playlist_requires_mood_or_environment(db, storage):
    with pytest.raises(AudioValidationError):
        await playlist(db, storage, None, PlaylistQuery(genre="jazz"))


async def test_playlist_orders_by_play_count(db, storage, make_user, make_audio):
    owner = await make_user()
    quiet = await make_audio(owner, environment="gym", play_count=1)
    loud = await make_audio(owner, environment="gym", play_count=50)
    await make_audio(owner, environment="car", play_count=100)

    page = await playlist(db, storage, owner, PlaylistQuery(environment="GYM"))

    assert [item.id for item in page.items] == [loud.id, quiet.id]


async def test_trending_window_and_order(db, make_user, make_audio):
    owner = await make_user()
    now = datetime.now(UTC)
    old = await make_audio(owner, play_count=999, created_at=now - timedelta(days=8))
    liked = await make_audio(owner, play_count=10, likes=5)
    played = await make_audio(owner, play_count=20)
    less_liked = await make_audio(owner, play_count=10, likes=1)
    await make_audio(owner, play_count=500, is_public=False)

    trending = await get_trending(db, limit=10, now=now)

    assert [r.id for r in trending] == [played.id, liked.id, less_liked.id]
    assert old.id not in {r.id for r in trending}


async def test_list_own_audio_includes_private(client, make_user, make_audio, auth_headers):
    owner = await make_user("owner")
    other = await make_user("other")
    await make_audio(owner, is_public=False)
    await make_audio(owner, is_public=True)
    await make_audio(other, is_public=True)

    response = await client.get("/api/audio/user", headers=auth_headers(owner))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert all(item["owner_id"] == owner.id for item in body["items"])


async def test_search_endpoint_normalises_filters(client, make_user, make_audio):
    owner = await make_user()
    record = await make_audio(owner, mood="dreamy", environment="sunny day")

    response = await client.get(
        "/api/audio/search", params={"mood": " Dreamy", "environment": "SUNNY DAY"}
    )

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == [record.id]


async def test_search_endpoint_rejects_unknown_mood(client):
    response = await client.get("/api/audio/search", params={"mood": "euphoric"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "mood"


async def test_get_private_audio_of_other_user_is_not_found(
    client, make_user, make_audio, auth_headers
):
    owner = await make_user("owner")
    other = await make_user("other")
    private = await make_audio(owner, is_public=False)

    hidden = await client.get(f"/api/audio/{private.id}", headers=auth_headers(other))
    missing = await client.get("/api/audio/424242", headers=auth_headers(other))

    assert hidden.status_code == missing.status_code == 404
    assert hidden.json() == missing.json() == {"detail": "Audio not found"}


async def test_playlist_endpoint(client, make_user, make_audio, auth_headers):
    owner = await make_user()
    record = await make_audio(owner, mood="party", environment="social")

    response = await client.post(
        "/api/audio/playlist", headers=auth_headers(owner), json={"mood": "party"}
    )
    missing_filter = await client.post(
        "/api/audio/playlist", headers=auth_headers(owner), json={"genre": "pop"}
    )

    assert [item["id"] for item in response.json()["items"]] == [record.id]
    assert missing_filter.status_code == 400


async def test_trending_endpoint_is_public(client, make_user, make_audio):
    owner = await make_user()
    record = await make_audio(owner, play_count=3)

    response = await client.get("/api/audio/trending")

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [record.id]
    assert response.json()[0]["file_url"].startswith("/uploads/audio-test-")
