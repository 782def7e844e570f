"""Folder monitoring."""

from .errors import WatchError
from .service import FolderWatcher

__all__ = ["FolderWatcher", "WatchError"]
