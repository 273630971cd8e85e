"""Upload orchestration: validate, store the binary, persist the record, compensate."""

import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile
from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.custom_logging import log_execution
from app.core.custom_logging import logger
from app.core.errors import AudioValidationError
from app.core.errors import FileTooLargeError
from app.core.errors import field_errors
from app.models import AudioRecord
from app.models import User
from app.schemas import AudioRecordCreate
from app.schemas import MimeType
from audio.storage import StorageBackend

ALLOWED_MIME_TYPES = frozenset(m.value for m in MimeType)


@dataclass
class UploadForm:
    """Raw metadata submitted alongside the file."""

    title: str | None = None
    mood: str | None = None
    environment: str | None = None
    description: str | None = None
    genre: str | None = None
    tags: str | list[str] | None = None
    is_public: bool = False
    duration: float | None = None
    artist: str | None = None
    album: str | None = None
    year: int | None = None
    bpm: float | None = None


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def check_upload(file: UploadFile | None, form: UploadForm) -> None:
    """Reject requests that cannot succeed before anything is written.

    Raises:
        AudioValidationError: No file, missing mood/environment, or a file
            whose extension or declared content type is not an accepted audio format.
        FileTooLargeError: The declared size exceeds ``MAX_UPLOAD_SIZE``.
    """
    if file is None or not file.filename:
        raise AudioValidationError(
            "No audio file uploaded",
            errors=[{"field": "file", "message": "Field required"}],
        )

    missing = [
        {"field": name, "message": "Field required"}
        for name in ("mood", "environment")
        if _blank(getattr(form, name))
    ]
    if missing:
        raise AudioValidationError("Mood and environment are required", errors=missing)

    ext = Path(file.filename).suffix.lower()
    if ext not in settings.ALLOWED_EXTENSIONS:
        raise AudioValidationError(
            f"Supported formats: {', '.join(settings.ALLOWED_EXTENSIONS)}",
            errors=[{"field": "file", "message": f"Extension '{ext}' not allowed"}],
        )

    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_MIME_TYPES:
        raise AudioValidationError(
            "Only audio files are allowed",
            errors=[{"field": "file", "message": f"Content type '{content_type}' not allowed"}],
        )

    if file.size is not None and file.size > settings.MAX_UPLOAD_SIZE:
        raise FileTooLargeError(
            f"File exceeds the {settings.MAX_UPLOAD_SIZE} byte upload limit"
        )


async def compensate(storage: StorageBackend, key: str) -> None:
    """Remove an object whose record could not be written; failures are only logged."""
    try:
        await storage.remove(key)
    except Exception as e:
        logger.error(f"Compensating delete of {key} failed: {e!r}", exc_info=True)
    else:
        logger.info(f"Compensating delete of {key} done")


@log_execution(level=logging.INFO)
async def upload_audio(
    db: AsyncSession,
    storage: StorageBackend,
    owner: User,
    file: UploadFile | None,
    form: UploadForm,
) -> AudioRecord:
    """
    Store an uploaded clip and create its record.

    Steps:
        1. Reject a missing file or missing mood/environment.
        2. Lower-case the categorical fields (done by the record schema).
        3. Write the binary through ``storage``; a failure here leaves nothing behind.
        4. Validate and insert the record; if that fails the stored object is
           removed again and the original error is raised.
        5. Increment the owner's upload counter, best-effort.

    Args:
        db: Session the owner is attached to.
        storage: Backend the binary is written to.
        owner: Authenticated, active uploader.
        file: The multipart file, or None when the request carried none.
        form: Metadata fields from the same request.

    Returns:
        AudioRecord: The persisted record.

    Raises:
        AudioValidationError: Invalid or missing input (step 1) or a record that
            fails validation (step 4).
        FileTooLargeError: The file exceeds ``MAX_UPLOAD_SIZE``.
        StorageError: The backend could not store the file.
        SQLAlchemyError: The record insert failed for a database reason.
    """
    check_upload(file, form)

    original_filename = Path(file.filename).name
    content_type = file.content_type.lower()
    stored = await storage.store(file, content_type, original_filename)

    if stored.size == 0 or stored.size > settings.MAX_UPLOAD_SIZE:
        await compensate(storage, stored.key)
        if stored.size == 0:
            raise AudioValidationError(
                "Uploaded file is empty",
                errors=[{"field": "file", "message": "File is empty"}],
            )
        raise FileTooLargeError(
            f"File exceeds the {settings.MAX_UPLOAD_SIZE} byte upload limit"
        )

    title = form.title if not _blank(form.title) else Path(original_filename).stem[:100]
    try:
        payload = AudioRecordCreate(
            title=title,
            description=form.description or None,
            storage_key=stored.key,
            storage_backend=storage.name,
            original_filename=original_filename,
            file_size=stored.size,
            mime_type=content_type,
            duration=form.duration,
            mood=form.mood,
            environment=form.environment,
            genre=form.genre,
            tags=form.tags,
            is_public=form.is_public,
            metadata={
                "artist": form.artist,
                "album": form.album,
                "year": form.year,
                "bpm": form.bpm,
            },
            owner_id=owner.id,
        )
    except ValidationError as e:
        logger.warning(f"Rejected metadata for {stored.key}: {e.error_count()} error(s)")
        await compensate(storage, stored.key)
        raise AudioValidationError("Validation failed.", errors=field_errors(e)) from e

    record = AudioRecord(
        **payload.model_dump(exclude={"metadata"}),
        **payload.metadata.model_dump(),
    )
    record.owner = owner

    try:
        db.add(record)
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database insert failed for audio {stored.key}: {e!r}")
        await db.rollback()
        await compensate(storage, stored.key)
        raise

    try:
        await db.execute(
            update(User)
            .where(User.id == owner.id)
            .values(total_uploads=User.total_uploads + 1)
        )
        await db.commit()
    except SQLAlchemyError as e:
        logger.warning(f"Upload counter not incremented for user {owner.id}: {e!r}")
        await db.rollback()
        await db.refresh(record)

    logger.info(f"User {owner.id} uploaded audio {record.id} ({stored.key})")
    return record
