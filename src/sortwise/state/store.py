"""Tracked-record storage shared by the pipeline, engine, and observers."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from .models import FileRecord, normalize_path

RecordUpdater = Callable[[Optional[FileRecord]], Optional[FileRecord]]


class RecordStore(Protocol):
    """Keyed collection of :class:`FileRecord` objects with atomic per-path updates."""

    def get(self, path: Path) -> Optional[FileRecord]: ...

    def upsert(self, record: FileRecord) -> FileRecord: ...

    def remove(self, path: Path) -> Optional[FileRecord]: ...

    def update(self, path: Path, updater: RecordUpdater) -> Optional[FileRecord]: ...

    def snapshot(self) -> List[FileRecord]: ...

    def clear(self) -> None: ...


class InMemoryRecordStore:
    """Thread-safe in-process implementation of :class:`RecordStore`.

    Records are immutable, so replacing the mapping value under the lock is
    enough for readers to always see either the old or the new record.
    """

    def __init__(self) -> None:
        self._records: Dict[Path, FileRecord] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return normalize_path(path) in self._records

    def get(self, path: Path) -> Optional[FileRecord]:
        """Return the record stored for ``path``, if any."""
        with self._lock:
            return self._records.get(normalize_path(path))

    def upsert(self, record: FileRecord) -> FileRecord:
        """Insert or replace the record keyed by ``record.path``."""
        with self._lock:
            self._records[record.path] = record
        return record

    def remove(self, path: Path) -> Optional[FileRecord]:
        """Drop the record for ``path`` and return it."""
        with self._lock:
            return self._records.pop(normalize_path(path), None)

    def update(self, path: Path, updater: RecordUpdater) -> Optional[FileRecord]:
        """Atomically read, transform, and store the record for ``path``.

        Args:
            path: Identity key of the record.
            updater: Called with the current record (or ``None``); returns the
                replacement, or ``None`` to leave the store untouched. It runs
                under the store lock and must not block.

        Returns:
            Optional[FileRecord]: The stored replacement, or ``None`` when the
            updater declined the change.
        """
        key = normalize_path(path)
        with self._lock:
            replacement = updater(self._records.get(key))
            if replacement is None:
                return None
            if replacement.path != key:
                self._records.pop(key, None)
            self._records[replacement.path] = replacement
            return replacement

    def snapshot(self) -> List[FileRecord]:
        """Return the current records ordered by path."""
        with self._lock:
            return sorted(self._records.values(), key=lambda record: str(record.path))

    def clear(self) -> None:
        """Forget every tracked record."""
        with self._lock:
            self._records.clear()


__all__ = ["InMemoryRecordStore", "RecordStore", "RecordUpdater"]
