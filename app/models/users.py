"""Users table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON
from sqlalchemy import BigInteger
from sqlalchemy import Boolean
from sqlalchemy import DateTime
from sqlalchemy import Enum
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import true
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.timestamp import TimestampMixin
from user.user import Role


class User(Base, TimestampMixin):
    """Represents a user account in the system.

    Attributes:
        id: Primary key identifier
        username: Unique username
        email: Unique, lower-cased email
        hashed_password: bcrypt hash, never serialised
        is_active: Account status flag
        role: "user" or "admin"
        total_uploads: Best-effort counter of successful uploads
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True
    )
    username: Mapped[str] = mapped_column(
        String(30), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)
    favorite_genres: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    default_mood: Mapped[str] = mapped_column(String(20), nullable=False, default="chill")
    auto_playlist: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    total_uploads: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_playlists: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        comment="False once the account has been deactivated",
    )
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.USER,
    )

    # Deleting a user keeps their audio records
    audio_records: Mapped[list[AudioRecord]] = relationship(  # noqa: F821
        back_populates="owner"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}')>"
