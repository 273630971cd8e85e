from .audiofiles import AudioRecord
from .base import Base
from .users import User

__all__ = ["AudioRecord", "Base", "User"]
