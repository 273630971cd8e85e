from datetime import datetime

from sqlalchemy import JSON
from sqlalchemy import BigInteger
from sqlalchemy import Boolean
from sqlalchemy import CheckConstraint
from sqlalchemy import DateTime
from sqlalchemy import Enum
from sqlalchemy import Float
from sqlalchemy import ForeignKey
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import SmallInteger
from sqlalchemy import String
from sqlalchemy import false
from sqlalchemy import true
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.timestamp import TimestampMixin
from app.schemas.audiofile import Environment
from app.schemas.audiofile import Genre
from app.schemas.audiofile import MimeType
from app.schemas.audiofile import Mood


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class AudioRecord(Base, TimestampMixin):
    """An uploaded audio clip and the tags used to build playlists from it.

    Attributes:
        id: Primary key identifier
        title: Display title
        storage_key: Opaque locator of the binary in the storage backend
        storage_backend: Backend that produced ``storage_key`` ("local" or "s3")
        original_filename: Name of the file as uploaded
        file_size: Size in bytes
        mime_type: Audio MIME type
        mood: Primary playlist filter
        environment: Secondary playlist filter
        genre: Optional musical genre
        tags: Free-form tags, unique per record
        owner_id: Foreign key to the uploading user
        is_public: Whether non-owners can see the record
        is_active: False once the owner deleted the record
        play_count: Number of registered plays
    """

    __tablename__ = "audio_records"
    __table_args__ = (
        Index("ix_audio_records_owner_created", "owner_id", "created_at"),
        Index("ix_audio_records_mood_environment", "mood", "environment"),
        Index("ix_audio_records_visibility", "is_public", "is_active"),
        CheckConstraint("file_size > 0", name="file_size_positive"),
        CheckConstraint("play_count >= 0", name="play_count_non_negative"),
        CheckConstraint("likes >= 0", name="likes_non_negative"),
        CheckConstraint("shares >= 0", name="shares_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    storage_key: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    storage_backend: Mapped[str] = mapped_column(String(16), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[MimeType] = mapped_column(
        Enum(MimeType, name="mime_type_enum", values_callable=enum_values),
        nullable=False,
    )
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)

    mood: Mapped[Mood] = mapped_column(
        Enum(Mood, name="mood_enum", values_callable=enum_values), nullable=False
    )
    environment: Mapped[Environment] = mapped_column(
        Enum(Environment, name="environment_enum", values_callable=enum_values),
        nullable=False,
    )
    genre: Mapped[Genre | None] = mapped_column(
        Enum(Genre, name="genre_enum", values_callable=enum_values),
        nullable=True,
        index=True,
    )
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    artist: Mapped[str | None] = mapped_column(String(100), nullable=True)
    album: Mapped[str | None] = mapped_column(String(100), nullable=True)
    year: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    bpm: Mapped[float | None] = mapped_column(Float, nullable=True)

    bitrate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sample_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    channels: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=2)

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    owner: Mapped["User"] = relationship(back_populates="audio_records", lazy="joined")  # noqa

    is_public: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    play_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0", index=True
    )
    likes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    shares: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_played_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<AudioRecord(id={self.id}, mood='{self.mood.value if self.mood else None}', "
            f"environment='{self.environment.value if self.environment else None}')>"
        )
