"""Owner updates, soft deletion, purging of deleted records and play counting."""

import logging
from datetime import UTC
from datetime import datetime

from sqlalchemy import select
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.custom_logging import log_execution
from app.core.custom_logging import logger
from app.models import AudioRecord
from app.models import User
from app.schemas import AudioRecordUpdate
from audio.get import get_owned_audio
from audio.get import get_visible_audio
from audio.storage import StorageBackend

REQUIRED_FIELDS = frozenset({"title", "mood", "environment", "is_public"})


async def update_audio(
    db: AsyncSession, audio_id: int, owner: User, changes: AudioRecordUpdate
) -> AudioRecord:
    """Apply the fields set in ``changes`` to a record owned by ``owner``."""
    record = await get_owned_audio(db, audio_id, owner)

    for key, value in changes.model_dump(exclude_unset=True).items():
        if key in REQUIRED_FIELDS and value is None:
            continue
        if key == "tags" and value is None:
            value = []
        setattr(record, key, value)

    await db.commit()
    await db.refresh(record)
    logger.info(f"User {owner.id} updated audio {record.id}")
    return record


async def deactivate_audio(db: AsyncSession, audio_id: int, owner: User) -> None:
    """Soft delete: the record stays in the table but no query returns it again.

    The stored object is removed later by :func:`purge_inactive`.
    """
    record = await get_owned_audio(db, audio_id, owner)
    record.is_active = False
    await db.commit()
    logger.info(f"User {owner.id} deleted audio {record.id}")


@log_execution(level=logging.INFO)
async def purge_inactive(db: AsyncSession, storage: StorageBackend) -> int:
    """
    Second step of deletion for soft-deleted records.

    Each inactive record first has its stored object removed, then the row is
    deleted and committed. ``remove`` tolerates missing objects, so a purge
    interrupted between the two steps is completed by the next run.

    Returns:
        int: Number of records purged.
    """
    result = await db.execute(select(AudioRecord).where(AudioRecord.is_active.is_(False)))
    records = result.scalars().unique().all()

    purged = 0
    for record in records:
        await storage.remove(record.storage_key)
        await db.delete(record)
        await db.commit()
        purged += 1

    logger.info(f"Purged {purged} inactive audio record(s)")
    return purged


async def register_play(db: AsyncSession, audio_id: int, viewer: User | None) -> AudioRecord:
    """Count a play of a visible record; the increment happens in SQL."""
    record = await get_visible_audio(db, audio_id, viewer)
    await db.execute(
        update(AudioRecord)
        .where(AudioRecord.id == record.id)
        .values(play_count=AudioRecord.play_count + 1, last_played_at=datetime.now(UTC))
    )
    await db.commit()
    await db.refresh(record)
    return record
