from datetime import UTC
from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel
from pydantic import BeforeValidator
from pydantic import ConfigDict
from pydantic import Field
from pydantic import StringConstraints
from pydantic import field_validator


class MimeType(str, Enum):
    """Accepted audio MIME types"""

    MPEG = "audio/mpeg"
    MP3 = "audio/mp3"
    WAV = "audio/wav"
    OGG = "audio/ogg"
    M4A = "audio/m4a"
    AAC = "audio/aac"
    FLAC = "audio/flac"
    WEBM = "audio/webm"


class Mood(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    ENERGETIC = "energetic"
    CALM = "calm"
    ROMANTIC = "romantic"
    ANGRY = "angry"
    NOSTALGIC = "nostalgic"
    CHILL = "chill"
    PARTY = "party"
    FOCUS = "focus"
    MELANCHOLIC = "melancholic"
    UPBEAT = "upbeat"
    RELAXED = "relaxed"
    INTENSE = "intense"
    DREAMY = "dreamy"


class Environment(str, Enum):
    """Listening context"""

    HOME = "home"
    OFFICE = "office"
    CAR = "car"
    GYM = "gym"
    OUTDOORS = "outdoors"
    CAFE = "cafe"
    RAINY_DAY = "rainy day"
    SUNNY_DAY = "sunny day"
    NIGHT = "night"
    MORNING = "morning"
    EVENING = "evening"
    STUDY = "study"
    WORK = "work"
    SLEEP = "sleep"
    COMMUTE = "commute"
    SOCIAL = "social"


class Genre(str, Enum):
    """Music genre classification"""

    ROCK = "rock"
    POP = "pop"
    JAZZ = "jazz"
    CLASSICAL = "classical"
    ELECTRONIC = "electronic"
    HIP_HOP = "hip-hop"
    COUNTRY = "country"
    BLUES = "blues"
    REGGAE = "reggae"
    FOLK = "folk"
    AMBIENT = "ambient"
    PODCAST = "podcast"
    VOICE_NOTE = "voice-note"
    INSTRUMENTAL = "instrumental"
    OTHER = "other"


Tag = Annotated[str, StringConstraints(strip_whitespace=True, max_length=30)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]


def normalize_choice(value):
    """Lower-case and trim categorical input before it meets the enum."""
    if isinstance(value, str):
        value = value.strip().lower()
        return value or None
    return value


def normalize_tags(value):
    """Accept a list or a comma-separated string; trim and de-duplicate, keeping case."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    seen: list[str] = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def normalize_optional_tags(value):
    return None if value is None else normalize_tags(value)


MoodChoice = Annotated[Mood, BeforeValidator(normalize_choice)]
EnvironmentChoice = Annotated[Environment, BeforeValidator(normalize_choice)]
GenreChoice = Annotated[Genre | None, BeforeValidator(normalize_choice)]
OptionalMood = Annotated[Mood | None, BeforeValidator(normalize_choice)]
OptionalEnvironment = Annotated[Environment | None, BeforeValidator(normalize_choice)]
TagSet = Annotated[list[Tag], BeforeValidator(normalize_tags)]
OptionalTagSet = Annotated[list[Tag] | None, BeforeValidator(normalize_optional_tags)]


def max_year() -> int:
    return datetime.now(UTC).year + 1


class AudioMetadata(BaseModel):
    artist: ShortText | None = None
    album: ShortText | None = None
    year: int | None = Field(None, ge=1900)
    bpm: float | None = Field(None, ge=0, le=300)

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v: int | None) -> int | None:
        if v is not None and v > max_year():
            raise ValueError("Year cannot be in the future")
        return v


class AudioRecordCreate(BaseModel):
    """Everything needed to persist an uploaded clip; validated before the insert."""

    title: Title
    description: Description | None = None
    storage_key: str = Field(..., max_length=512)
    storage_backend: str = Field(..., max_length=16)
    original_filename: str = Field(..., max_length=255)
    file_size: int = Field(..., gt=0)
    mime_type: MimeType
    duration: float | None = Field(None, ge=0)
    mood: MoodChoice
    environment: EnvironmentChoice
    genre: GenreChoice = None
    tags: TagSet = []
    is_public: bool = False
    metadata: AudioMetadata = AudioMetadata()
    bitrate: int | None = Field(None, ge=0)
    sample_rate: int | None = Field(None, ge=0)
    channels: int = Field(2, ge=1, le=2)
    owner_id: int


class AudioRecordUpdate(BaseModel):
    """Owner-editable fields; unset fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    title: Title | None = None
    description: Description | None = None
    mood: OptionalMood = None
    environment: OptionalEnvironment = None
    genre: GenreChoice = None
    tags: OptionalTagSet = None
    is_public: bool | None = None
    artist: ShortText | None = None
    album: ShortText | None = None
    year: int | None = Field(None, ge=1900)
    bpm: float | None = Field(None, ge=0, le=300)

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v: int | None) -> int | None:
        if v is not None and v > max_year():
            raise ValueError("Year cannot be in the future")
        return v


class PlaylistQuery(BaseModel):
    mood: OptionalMood = None
    environment: OptionalEnvironment = None
    genre: GenreChoice = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class AudioStats(BaseModel):
    play_count: int = 0
    likes: int = 0
    shares: int = 0
    last_played_at: datetime | None = None


class AudioQuality(BaseModel):
    bitrate: int | None = None
    sample_rate: int | None = None
    channels: int = 2


class AudioOwner(BaseModel):
    id: int
    username: str


class AudioPublic(BaseModel):
    """Outward view of an audio record; ``file_url`` is resolved per response."""

    id: int
    title: str
    description: str | None = None
    mood: Mood
    environment: Environment
    genre: Genre | None = None
    tags: list[str] = []
    duration: float | None = None
    formatted_duration: str
    file_url: str
    file_size: int
    formatted_file_size: str
    mime_type: MimeType
    original_filename: str
    is_public: bool
    metadata: AudioMetadata
    quality: AudioQuality
    stats: AudioStats
    owner: AudioOwner | None = None
    owner_id: int
    created_at: datetime
    updated_at: datetime


class AudioPage(BaseModel):
    items: list[AudioPublic]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool
