"""Public schema exports."""

from .auth import TokenInfo
from .files import DriveFile

__all__ = ["DriveFile", "TokenInfo"]
