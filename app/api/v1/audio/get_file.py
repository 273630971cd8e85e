from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models import User
from app.schemas import AudioPage
from app.schemas import AudioPublic
from app.schemas import PlaylistQuery
from app.schemas.audiofile import GenreChoice
from app.schemas.audiofile import OptionalEnvironment
from app.schemas.audiofile import OptionalMood
from audio.get import get_trending
from audio.get import get_visible_audio
from audio.get import list_by_owner
from audio.get import playlist
from audio.get import search_audio
from audio.get import to_public
from audio.storage import StorageBackend
from audio.storage import get_storage
from user.get import get_current_active_user
from user.get import get_optional_user

get_file_router = APIRouter()

Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


@get_file_router.get("/user", response_model=AudioPage)
async def list_own_audio(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    page: Page = 1,
    limit: Limit = 20,
):
    """The caller's own active uploads, private ones included, newest first."""
    return await list_by_owner(db, storage, current_user.id, current_user, page, limit)


@get_file_router.post("/playlist", response_model=AudioPage)
async def build_playlist(
    query: PlaylistQuery,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
):
    """
    Most played clips for a mood and/or environment.

    Raises:
        AudioValidationError 400: Neither mood nor environment given.
    """
    return await playlist(db, storage, current_user, query)


@get_file_router.get("/trending", response_model=list[AudioPublic])
async def trending(
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    _: Annotated[User | None, Depends(get_optional_user)],
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
):
    records = await get_trending(db, limit=limit)
    return [to_public(record, storage) for record in records]


@get_file_router.get("/search", response_model=AudioPage)
async def search(
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    viewer: Annotated[User | None, Depends(get_optional_user)],
    q: Annotated[str | None, Query(max_length=100)] = None,
    mood: Annotated[OptionalMood, Query()] = None,
    environment: Annotated[OptionalEnvironment, Query()] = None,
    genre: Annotated[GenreChoice, Query()] = None,
    page: Page = 1,
    limit: Limit = 20,
):
    """Filter by any combination of text, mood, environment and genre."""
    return await search_audio(
        db,
        storage,
        viewer,
        mood=mood,
        environment=environment,
        genre=genre,
        text=q,
        page=page,
        limit=limit,
    )


@get_file_router.get("/{audio_id}", response_model=AudioPublic)
async def read_audio(
    audio_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    viewer: Annotated[User | None, Depends(get_optional_user)],
):
    """
    A single clip. Private clips of other users are reported as not found.

    Raises:
        AudioNotFoundError 404: Absent, deleted, or not visible to the caller.
    """
    record = await get_visible_audio(db, audio_id, viewer)
    return to_public(record, storage)
