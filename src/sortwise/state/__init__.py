"""Tracked-record state and the undo journal."""

from __future__ import annotations

from pathlib import Path

from .errors import InvalidTransitionError, JournalError, StateError
from .journal import JournalStore, JsonlJournalStore, MemoryJournalStore, UndoJournal
from .models import (
    FileRecord,
    JournalMark,
    JournalOutcome,
    ProcessingStatus,
    UndoEntry,
    normalize_path,
)
from .store import InMemoryRecordStore, RecordStore

DEFAULT_STATE_DIRNAME = ".sortwise"
JOURNAL_FILENAME = "journal.jsonl"


def journal_path_for(root: Path) -> Path:
    """Return the journal location for an organization root."""
    return root / DEFAULT_STATE_DIRNAME / JOURNAL_FILENAME


__all__ = [
    "DEFAULT_STATE_DIRNAME",
    "JOURNAL_FILENAME",
    "FileRecord",
    "InMemoryRecordStore",
    "InvalidTransitionError",
    "JournalError",
    "JournalMark",
    "JournalOutcome",
    "JournalStore",
    "JsonlJournalStore",
    "MemoryJournalStore",
    "ProcessingStatus",
    "RecordStore",
    "StateError",
    "UndoEntry",
    "UndoJournal",
    "journal_path_for",
    "normalize_path",
]
