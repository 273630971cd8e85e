from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from app.core.rate_limiting import upload_rate_limit
from app.db.session import get_db
from app.models import User
from app.schemas import AudioPublic
from audio.create import UploadForm
from audio.create import upload_audio
from audio.get import to_public
from audio.storage import StorageBackend
from audio.storage import get_storage
from user.get import get_current_active_user

upload_file_router = APIRouter()


@upload_file_router.post(
    "/upload",
    response_model=AudioPublic,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(upload_rate_limit)],
)
async def upload_audio_file(
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    file: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
    mood: Annotated[str | None, Form()] = None,
    environment: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    genre: Annotated[str | None, Form()] = None,
    tags: Annotated[str | None, Form()] = None,
    is_public: Annotated[bool, Form()] = False,
    duration: Annotated[float | None, Form()] = None,
    artist: Annotated[str | None, Form()] = None,
    album: Annotated[str | None, Form()] = None,
    year: Annotated[int | None, Form()] = None,
    bpm: Annotated[float | None, Form()] = None,
):
    """Upload an audio clip with its mood/environment metadata.

    The file is written to the configured storage backend first; the record is
    created only once that succeeded. If the record cannot be created the stored
    object is removed again.

    Args:
        file: The audio file (mp3, wav, ogg, m4a, aac, flac or webm).
        title: Defaults to the file name without extension.
        mood: Required, one of the supported moods.
        environment: Required, one of the supported environments.
        tags: Comma separated list.
        current_user: Authenticated user (automatically injected)
        db: Async database session (automatically injected)
        storage: Storage backend (automatically injected)

    Returns:
        AudioPublic: The created record with its resolved file URL.

    Raises:
        AudioValidationError 400: Missing file or fields, unsupported format,
            values outside the allowed sets.
        FileTooLargeError 413: The file exceeds ``MAX_UPLOAD_SIZE``.
        StorageError 502: The storage backend rejected the write.
    """
    form = UploadForm(
        title=title,
        mood=mood,
        environment=environment,
        description=description,
        genre=genre,
        tags=tags,
        is_public=is_public,
        duration=duration,
        artist=artist,
        album=album,
        year=year,
        bpm=bpm,
    )
    record = await upload_audio(db, storage, current_user, file, form)
    return to_public(record, storage)
