"""Read side: filtered, paginated queries over audio records and their outward projection."""

from __future__ import annotations

import math
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlalchemy import or_
from sqlalchemy import select
from sqlalchemy.sql.elements import ColumnElement

from app.core.errors import AudioNotFoundError
from app.core.errors import AudioValidationError
from app.core.errors import PermissionDeniedError
from app.models import AudioRecord
from app.schemas import AudioPage
from app.schemas import AudioPublic
from app.schemas import Environment
from app.schemas import Genre
from app.schemas import Mood
from app.schemas import PlaylistQuery

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.models import User
    from audio.storage import StorageBackend

TRENDING_WINDOW_DAYS = 7
FILE_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_duration(seconds: float | None) -> str:
    """``185.4`` -> ``"3:05"``"""
    if not seconds:
        return "0:00"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def format_file_size(size: int | None) -> str:
    """``1572864`` -> ``"1.5 MB"``"""
    if not size:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(FILE_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.1f} {FILE_SIZE_UNITS[unit]}"


def to_public(record: AudioRecord, storage: StorageBackend) -> AudioPublic:
    """Project a record for the caller, resolving its file URL now."""
    return AudioPublic(
        id=record.id,
        title=record.title,
        description=record.description,
        mood=record.mood,
        environment=record.environment,
        genre=record.genre,
        tags=list(record.tags or []),
        duration=record.duration,
        formatted_duration=format_duration(record.duration),
        file_url=storage.resolve(record.storage_key),
        file_size=record.file_size,
        formatted_file_size=format_file_size(record.file_size),
        mime_type=record.mime_type,
        original_filename=record.original_filename,
        is_public=record.is_public,
        metadata={
            "artist": record.artist,
            "album": record.album,
            "year": record.year,
            "bpm": record.bpm,
        },
        quality={
            "bitrate": record.bitrate,
            "sample_rate": record.sample_rate,
            "channels": record.channels,
        },
        stats={
            "play_count": record.play_count,
            "likes": record.likes,
            "shares": record.shares,
            "last_played_at": record.last_played_at,
        },
        owner={"id": record.owner.id, "username": record.owner.username}
        if record.owner is not None
        else None,
        owner_id=record.owner_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def visible_to(viewer: User | None) -> ColumnElement[bool]:
    """Active records that are public or owned by ``viewer``."""
    if viewer is None:
        return AudioRecord.is_active.is_(True) & AudioRecord.is_public.is_(True)
    return AudioRecord.is_active.is_(True) & or_(
        AudioRecord.is_public.is_(True), AudioRecord.owner_id == viewer.id
    )


def tag_values(dialect_name: str):
    """One row per tag of the enclosing record, for use in a correlated subquery."""
    if dialect_name == "postgresql":
        return func.json_array_elements_text(AudioRecord.tags).table_valued("value")
    return func.json_each(AudioRecord.tags).table_valued("value")


def text_match(text: str, dialect_name: str = "sqlite") -> ColumnElement[bool]:
    """Case-insensitive substring match on title, description, a tag, artist or album."""
    escaped = text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    tags = tag_values(dialect_name)
    return or_(
        AudioRecord.title.ilike(pattern, escape="\\"),
        AudioRecord.description.ilike(pattern, escape="\\"),
        select(tags.c.value).where(tags.c.value.ilike(pattern, escape="\\")).exists(),
        AudioRecord.artist.ilike(pattern, escape="\\"),
        AudioRecord.album.ilike(pattern, escape="\\"),
    )


async def paginate(
    db: AsyncSession,
    storage: StorageBackend,
    conditions: list[ColumnElement[bool]],
    order_by: list,
    page: int,
    limit: int,
) -> AudioPage:
    """Run an offset/limit query and wrap the rows with paging metadata."""
    skip = (page - 1) * limit
    total = await db.scalar(select(func.count(AudioRecord.id)).where(*conditions))

    result = await db.execute(
        select(AudioRecord).where(*conditions).order_by(*order_by).offset(skip).limit(limit)
    )
    records = result.scalars().unique().all()

    return AudioPage(
        items=[to_public(record, storage) for record in records],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
        has_next=skip + len(records) < total,
        has_prev=page > 1,
    )


NEWEST_FIRST = [AudioRecord.created_at.desc(), AudioRecord.id.desc()]
MOST_PLAYED_FIRST = [
    AudioRecord.play_count.desc(),
    AudioRecord.created_at.desc(),
    AudioRecord.id.desc(),
]


async def list_by_owner(
    db: AsyncSession,
    storage: StorageBackend,
    owner_id: int,
    viewer: User | None,
    page: int = 1,
    limit: int = 20,
) -> AudioPage:
    """A user's active records; private ones only when the viewer is that user."""
    conditions = [AudioRecord.owner_id == owner_id, visible_to(viewer)]
    return await paginate(db, storage, conditions, NEWEST_FIRST, page, limit)


async def search_audio(
    db: AsyncSession,
    storage: StorageBackend,
    viewer: User | None,
    mood: Mood | None = None,
    environment: Environment | None = None,
    genre: Genre | None = None,
    text: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> AudioPage:
    """Conjunction of every filter given; ``text`` matches any of the text fields."""
    conditions = [visible_to(viewer)]
    if mood is not None:
        conditions.append(AudioRecord.mood == mood)
    if environment is not None:
        conditions.append(AudioRecord.environment == environment)
    if genre is not None:
        conditions.append(AudioRecord.genre == genre)
    if text and text.strip():
        conditions.append(text_match(text, db.bind.dialect.name))
    return await paginate(db, storage, conditions, NEWEST_FIRST, page, limit)


async def playlist(
    db: AsyncSession,
    storage: StorageBackend,
    viewer: User | None,
    query: PlaylistQuery,
) -> AudioPage:
    """Most played records for a mood and/or environment.

    Raises:
        AudioValidationError: Neither mood nor environment given.
    """
    if query.mood is None and query.environment is None:
        raise AudioValidationError(
            "At least one filter (mood or environment) is required",
            errors=[
                {"field": "mood", "message": "mood or environment required"},
                {"field": "environment", "message": "mood or environment required"},
            ],
        )
    conditions = [visible_to(viewer)]
    if query.mood is not None:
        conditions.append(AudioRecord.mood == query.mood)
    if query.environment is not None:
        conditions.append(AudioRecord.environment == query.environment)
    if query.genre is not None:
        conditions.append(AudioRecord.genre == query.genre)
    return await paginate(db, storage, conditions, MOST_PLAYED_FIRST, query.page, query.limit)


async def get_trending(
    db: AsyncSession,
    limit: int = 10,
    days: int = TRENDING_WINDOW_DAYS,
    now: datetime | None = None,
) -> list[AudioRecord]:
    """Public records created in the last ``days`` days, most played then most liked."""
    since = (now or datetime.now(UTC)) - timedelta(days=days)
    result = await db.execute(
        select(AudioRecord)
        .where(
            AudioRecord.is_active.is_(True),
            AudioRecord.is_public.is_(True),
            AudioRecord.created_at >= since,
        )
        .order_by(
            AudioRecord.play_count.desc(),
            AudioRecord.likes.desc(),
            AudioRecord.created_at.desc(),
        )
        .limit(limit)
    )
    return list(result.scalars().unique().all())


async def get_visible_audio(
    db: AsyncSession, audio_id: int, viewer: User | None
) -> AudioRecord:
    """
    Fetch a record the viewer is allowed to see.

    Raises:
        AudioNotFoundError: The record does not exist, is inactive, or is
            private and not owned by ``viewer``; the three cases are indistinguishable.
    """
    result = await db.execute(
        select(AudioRecord).where(AudioRecord.id == audio_id, visible_to(viewer))
    )
    record = result.scalars().first()
    if record is None:
        raise AudioNotFoundError()
    return record


async def get_owned_audio(db: AsyncSession, audio_id: int, owner: User) -> AudioRecord:
    """
    Fetch a record ``owner`` may modify.

    Raises:
        AudioNotFoundError: Not visible to ``owner``.
        PermissionDeniedError: Visible (public) but owned by someone else.
    """
    record = await get_visible_audio(db, audio_id, owner)
    if record.owner_id != owner.id:
        raise PermissionDeniedError("Only the owner can modify this audio")
    return record
