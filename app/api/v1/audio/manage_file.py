from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models import User
from app.schemas import AudioPublic
from app.schemas import AudioRecordUpdate
from audio.get import to_public
from audio.storage import StorageBackend
from audio.storage import get_storage
from audio.update import deactivate_audio
from audio.update import register_play
from audio.update import update_audio
from user.get import get_current_active_user
from user.get import get_optional_user
from user.user import MessageResponse

manage_file_router = APIRouter()


@manage_file_router.put("/{audio_id}", response_model=AudioPublic)
async def update_own_audio(
    audio_id: int,
    changes: AudioRecordUpdate,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
):
    """
    Edit the metadata of one of the caller's clips.

    Raises:
        AudioNotFoundError 404: Not visible to the caller.
        PermissionDeniedError 403: Visible but owned by someone else.
    """
    record = await update_audio(db, audio_id, current_user, changes)
    return to_public(record, storage)


@manage_file_router.delete("/{audio_id}", response_model=MessageResponse)
async def delete_own_audio(
    audio_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await deactivate_audio(db, audio_id, current_user)
    return MessageResponse(message="Audio deleted successfully.")


@manage_file_router.post("/{audio_id}/play", response_model=AudioPublic)
async def play_audio(
    audio_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    viewer: Annotated[User | None, Depends(get_optional_user)],
):
    record = await register_play(db, audio_id, viewer)
    return to_public(record, storage)
