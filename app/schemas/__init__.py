from .audiofile import AudioPage
from .audiofile import AudioPublic
from .audiofile import AudioRecordCreate
from .audiofile import AudioRecordUpdate
from .audiofile import Environment
from .audiofile import Genre
from .audiofile import MimeType
from .audiofile import Mood
from .audiofile import PlaylistQuery

__all__ = [
    "AudioPage",
    "AudioPublic",
    "AudioRecordCreate",
    "AudioRecordUpdate",
    "Environment",
    "Genre",
    "MimeType",
    "Mood",
    "PlaylistQuery",
]
