"""Append-only undo journal for organize operations."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from .errors import JournalError
from .models import JournalItem, JournalMark, JournalOutcome, UndoEntry

LOGGER = logging.getLogger(__name__)

_ITEM_ADAPTER: TypeAdapter[JournalItem] = TypeAdapter(JournalItem)


class JournalStore(Protocol):
    """Persistence backend for journal items; append and full read only."""

    def append(self, item: UndoEntry | JournalMark) -> None: ...

    def read_all(self) -> List[UndoEntry | JournalMark]: ...


class MemoryJournalStore:
    """Journal store kept in memory, used for tests and dry runs."""

    def __init__(self) -> None:
        self._items: List[UndoEntry | JournalMark] = []
        self._lock = threading.Lock()

    def append(self, item: UndoEntry | JournalMark) -> None:
        with self._lock:
            self._items.append(item)

    def read_all(self) -> List[UndoEntry | JournalMark]:
        with self._lock:
            return list(self._items)


class JsonlJournalStore:
    """Journal store persisted as one JSON document per line."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Return the journal file location."""
        return self._path

    def append(self, item: UndoEntry | JournalMark) -> None:
        """Append ``item`` and flush it to disk before returning.

        Raises:
            JournalError: If the journal file cannot be written.
        """
        line = item.model_dump_json()
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._repair_tail()
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
                    handle.flush()
                    os.fsync(handle.fileno())
            except OSError as exc:
                raise JournalError(f"Unable to write undo journal {self._path}: {exc}") from exc

    def _repair_tail(self) -> None:
        """Terminate or drop a final line left without a newline by an interrupted append.

        A tail that still parses only lost its newline and is kept; anything
        else is truncated back to the last complete line.
        """
        if not self._path.exists():
            return
        with self._path.open("r+b") as handle:
            size = handle.seek(0, os.SEEK_END)
            if size == 0:
                return
            handle.seek(size - 1)
            if handle.read(1) == b"\n":
                return
            handle.seek(0)
            data = handle.read()
            cut = data.rfind(b"\n") + 1
            try:
                _ITEM_ADAPTER.validate_json(data[cut:])
            except ValidationError:
                LOGGER.warning("Dropping interrupted journal write at the end of %s", self._path)
                handle.truncate(cut)
            else:
                handle.write(b"\n")
            handle.flush()
            os.fsync(handle.fileno())

    def read_all(self) -> List[UndoEntry | JournalMark]:
        """Return every item in the journal in write order.

        A malformed final line (an interrupted append) is ignored; corruption
        anywhere else raises.

        Raises:
            JournalError: If the journal is unreadable or corrupt.
        """
        with self._lock:
            if not self._path.exists():
                return []
            try:
                lines = self._path.read_text(encoding="utf-8").splitlines()
            except OSError as exc:
                raise JournalError(f"Unable to read undo journal {self._path}: {exc}") from exc

        items: List[UndoEntry | JournalMark] = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                items.append(_ITEM_ADAPTER.validate_json(line))
            except ValidationError as exc:
                if number == len(lines):
                    LOGGER.warning("Ignoring truncated journal line %d in %s", number, self._path)
                    continue
                raise JournalError(f"Corrupt undo journal line {number} in {self._path}") from exc
        return items


class UndoJournal:
    """Domain view over a :class:`JournalStore`.

    Entries are never rewritten. Each entry's state is the outcome of the most
    recent mark appended for it; an entry without marks is still in flight (or
    was interrupted) and counts as unresolved.
    """

    def __init__(self, store: JournalStore) -> None:
        self._store = store

    @property
    def store(self) -> JournalStore:
        """Return the backing store."""
        return self._store

    def record_intent(self, original_path: Path, new_path: Path, size_bytes: int) -> UndoEntry:
        """Append a write-ahead entry for a move that is about to happen."""
        entry = UndoEntry(original_path=original_path, new_path=new_path, size_bytes=size_bytes)
        self._store.append(entry)
        return entry

    def mark(
        self,
        entry: UndoEntry | str,
        outcome: JournalOutcome,
        message: Optional[str] = None,
    ) -> JournalMark:
        """Append an outcome for ``entry``."""
        entry_id = entry if isinstance(entry, str) else entry.entry_id
        item = JournalMark(entry_id=entry_id, outcome=outcome, message=message)
        self._store.append(item)
        return item

    def entries(self) -> List[UndoEntry]:
        """Return all entries in write order."""
        return [item for item in self._store.read_all() if isinstance(item, UndoEntry)]

    def outcomes(self) -> Dict[str, JournalOutcome]:
        """Return the latest outcome for each entry that has one."""
        latest: Dict[str, JournalOutcome] = {}
        for item in self._store.read_all():
            if isinstance(item, JournalMark):
                latest[item.entry_id] = item.outcome
        return latest

    def outcome_of(self, entry_id: str) -> Optional[JournalOutcome]:
        """Return the latest outcome for ``entry_id``."""
        return self.outcomes().get(entry_id)

    def unresolved(self) -> List[UndoEntry]:
        """Return entries with no outcome or an explicit unresolved mark."""
        outcomes = self.outcomes()
        return [
            entry
            for entry in self.entries()
            if outcomes.get(entry.entry_id, JournalOutcome.UNRESOLVED) is JournalOutcome.UNRESOLVED
        ]

    def undoable(self) -> List[UndoEntry]:
        """Return committed, not yet reverted entries in write order."""
        outcomes = self.outcomes()
        return [
            entry
            for entry in self.entries()
            if outcomes.get(entry.entry_id) is JournalOutcome.COMMITTED
        ]


__all__ = [
    "JournalStore",
    "JsonlJournalStore",
    "MemoryJournalStore",
    "UndoJournal",
]
