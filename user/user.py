from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel
from pydantic import BeforeValidator
from pydantic import ConfigDict
from pydantic import EmailStr
from pydantic import Field
from pydantic import StringConstraints
from pydantic import computed_field
from pydantic import field_validator

from app.schemas.audiofile import Genre
from app.schemas.audiofile import Mood
from app.schemas.audiofile import normalize_choice

Username = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$"
    ),
]
Name = Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)]
Bio = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
Password = Annotated[str, Field(min_length=6, max_length=72)]

# The moods a user may pick as a default; a subset of the playlist moods
DEFAULT_MOODS = frozenset(
    {
        Mood.HAPPY,
        Mood.SAD,
        Mood.ENERGETIC,
        Mood.CALM,
        Mood.ROMANTIC,
        Mood.ANGRY,
        Mood.NOSTALGIC,
        Mood.CHILL,
        Mood.PARTY,
        Mood.FOCUS,
    }
)


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


def lower_email(value):
    return value.strip().lower() if isinstance(value, str) else value


class UserCreate(BaseModel):
    username: Username = Field(..., examples=["music_lover"])
    email: Annotated[EmailStr, BeforeValidator(lower_email)] = Field(
        ..., examples=["user@example.com"]
    )
    password: Password = Field(..., examples=["securepassword123"])
    first_name: Name | None = Field(None, examples=["Jane"])
    last_name: Name | None = Field(None, examples=["Doe"])


class UserLogin(BaseModel):
    credential: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class UserProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Name | None = None
    last_name: Name | None = None
    bio: Bio | None = None
    favorite_genres: list[Annotated[Genre, BeforeValidator(normalize_choice)]] | None = None
    default_mood: Annotated[Mood | None, BeforeValidator(normalize_choice)] = None
    auto_playlist: bool | None = None

    @field_validator("default_mood")
    @classmethod
    def default_mood_allowed(cls, v: Mood | None) -> Mood | None:
        if v is not None and v not in DEFAULT_MOODS:
            raise ValueError(f"'{v.value}' cannot be used as a default mood")
        return v


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: Password


class DeactivateRequest(BaseModel):
    password: str = Field(..., min_length=1)


class UserProfile(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    favorite_genres: list[str] = []


class UserStats(BaseModel):
    total_uploads: int = 0
    total_playlists: int = 0
    last_login: datetime | None = None


class UserPublic(BaseModel):
    """Public profile; never carries the password hash or email."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str | None = Field(None, exclude=True)
    last_name: str | None = Field(None, exclude=True)
    bio: str | None = Field(None, exclude=True)
    favorite_genres: list[str] = Field([], exclude=True)
    total_uploads: int = Field(0, exclude=True)
    total_playlists: int = Field(0, exclude=True)
    last_login: datetime | None = Field(None, exclude=True)
    default_mood: str = "chill"
    auto_playlist: bool = False
    created_at: datetime

    @computed_field
    @property
    def full_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name or self.username

    @computed_field
    @property
    def profile(self) -> UserProfile:
        return UserProfile(
            first_name=self.first_name,
            last_name=self.last_name,
            bio=self.bio,
            favorite_genres=list(self.favorite_genres or []),
        )

    @computed_field
    @property
    def stats(self) -> UserStats:
        return UserStats(
            total_uploads=self.total_uploads,
            total_playlists=self.total_playlists,
            last_login=self.last_login,
        )


class UserAdminView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    is_active: bool
    role: Role
    total_uploads: int
    created_at: datetime


class UserAdminUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_active: bool | None = None
    role: Role | None = None


class AuthResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    user: UserPublic


class MessageResponse(BaseModel):
    message: str


class TokenResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
