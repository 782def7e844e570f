"""Tracked-file and undo journal data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import InvalidTransitionError


def utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


def normalize_path(path: Path | str) -> Path:
    """Return the absolute, resolved form used as a record identity key."""
    return Path(path).expanduser().resolve()


class ProcessingStatus(str, Enum):
    """Lifecycle states of a tracked file."""

    PENDING = "pending"
    SCANNING = "scanning"
    ANALYZED = "analyzed"
    ORGANIZING = "organizing"
    ORGANIZED = "organized"
    FAILED = "failed"
    SKIPPED = "skipped"


SUGGESTED_PATH_STATUSES = frozenset(
    {ProcessingStatus.ANALYZED, ProcessingStatus.ORGANIZING, ProcessingStatus.ORGANIZED}
)
IN_PROGRESS_STATUSES = frozenset({ProcessingStatus.SCANNING, ProcessingStatus.ORGANIZING})

ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset(
        {ProcessingStatus.SCANNING, ProcessingStatus.FAILED, ProcessingStatus.SKIPPED}
    ),
    ProcessingStatus.SCANNING: frozenset(
        {ProcessingStatus.ANALYZED, ProcessingStatus.FAILED, ProcessingStatus.SKIPPED}
    ),
    ProcessingStatus.ANALYZED: frozenset(
        {
            ProcessingStatus.ORGANIZING,
            ProcessingStatus.SCANNING,
            ProcessingStatus.FAILED,
            ProcessingStatus.SKIPPED,
        }
    ),
    ProcessingStatus.ORGANIZING: frozenset({ProcessingStatus.ORGANIZED, ProcessingStatus.FAILED}),
    ProcessingStatus.ORGANIZED: frozenset({ProcessingStatus.ANALYZED, ProcessingStatus.SCANNING}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.SCANNING, ProcessingStatus.SKIPPED}),
    ProcessingStatus.SKIPPED: frozenset({ProcessingStatus.SCANNING}),
}


class FileRecord(BaseModel):
    """Classification and organization state of one tracked file.

    Records are immutable; every change produces a new validated instance so a
    store can swap them atomically.

    Attributes:
        path: Absolute source path; the identity key.
        name: File name including extension.
        extension: Lower-case extension without the leading dot.
        size_bytes: File size at detection time.
        created_at: Creation timestamp when the platform exposes one.
        modified_at: Last modification timestamp.
        category: Detected category.
        sub_category: Detected sub-category.
        confidence: Classification confidence between 0 and 1.
        status: Current lifecycle status.
        suggested_path: Destination computed for the record.
        error_message: Failure reason; present only for failed records.
        keywords: Ordered keywords extracted from the name or the AI response.
        description: Free-text description returned by the AI classifier.
        processed_at: Time the file was organized.
        pending_ai: Whether an AI re-analysis is queued for the record.
        content_hash: Cached content digest used by duplicate detection.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: Path
    name: str
    extension: str = ""
    size_bytes: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    status: ProcessingStatus = ProcessingStatus.PENDING
    suggested_path: Optional[Path] = None
    error_message: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    description: Optional[str] = None
    processed_at: Optional[datetime] = None
    pending_ai: bool = False
    content_hash: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "FileRecord":
        has_suggestion = self.suggested_path is not None
        if has_suggestion != (self.status in SUGGESTED_PATH_STATUSES):
            raise ValueError(
                f"suggested_path must be set exactly for analyzed/organizing/organized records "
                f"(status={self.status.value})"
            )
        failed = self.status is ProcessingStatus.FAILED
        if bool(self.error_message) != failed:
            raise ValueError("error_message must be non-empty exactly when status is failed")
        if self.status in SUGGESTED_PATH_STATUSES and not self.category:
            raise ValueError("category is required once a record is analyzed")
        if self.pending_ai and self.status is not ProcessingStatus.ANALYZED:
            raise ValueError("pending_ai is only valid for analyzed records")
        return self

    @classmethod
    def from_path(cls, path: Path | str) -> "FileRecord":
        """Build a pending record from filesystem metadata.

        Args:
            path: File to describe.

        Returns:
            FileRecord: Record in the ``PENDING`` status.

        Raises:
            OSError: If the file cannot be stat'ed.
        """
        resolved = normalize_path(path)
        stat = resolved.stat()
        birth = getattr(stat, "st_birthtime", None)
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        created = datetime.fromtimestamp(birth, tz=timezone.utc) if birth else modified
        return cls(
            path=resolved,
            name=resolved.name,
            extension=resolved.suffix[1:].lower() if resolved.suffix else "",
            size_bytes=stat.st_size,
            created_at=created,
            modified_at=modified,
        )

    @property
    def is_in_progress(self) -> bool:
        """Return whether a worker currently owns the record."""
        return self.status in IN_PROGRESS_STATUSES

    def with_changes(self, **changes: Any) -> "FileRecord":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return FileRecord.model_validate(data)

    def transition(self, status: ProcessingStatus, **changes: Any) -> "FileRecord":
        """Return a validated copy moved to ``status``.

        Fields tied to a status (``suggested_path``, ``error_message``,
        ``pending_ai``) are cleared when the new status does not allow them,
        unless ``changes`` sets them explicitly.

        Raises:
            InvalidTransitionError: If the transition is not permitted.
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"{self.path}: cannot move from {self.status.value} to {status.value}"
            )
        updates: dict[str, Any] = {"status": status}
        if status not in SUGGESTED_PATH_STATUSES:
            updates["suggested_path"] = None
        if status is not ProcessingStatus.FAILED:
            updates["error_message"] = None
        if status is not ProcessingStatus.ANALYZED:
            updates["pending_ai"] = False
        updates.update(changes)
        return self.with_changes(**updates)


class JournalOutcome(str, Enum):
    """Resolution recorded against an undo journal entry."""

    COMMITTED = "committed"
    UNRESOLVED = "unresolved"
    REVERTED = "reverted"
    ABANDONED = "abandoned"


class UndoEntry(BaseModel):
    """Write-ahead record of one move performed by the organize engine."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["entry"] = "entry"
    entry_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    original_path: Path
    new_path: Path
    timestamp: datetime = Field(default_factory=utcnow)
    size_bytes: int = 0


class JournalMark(BaseModel):
    """Outcome appended after an entry's move finished, failed, or was reverted."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["mark"] = "mark"
    entry_id: str
    outcome: JournalOutcome
    timestamp: datetime = Field(default_factory=utcnow)
    message: Optional[str] = None


JournalItem = Annotated[Union[UndoEntry, JournalMark], Field(discriminator="kind")]


__all__ = [
    "ALLOWED_TRANSITIONS",
    "IN_PROGRESS_STATUSES",
    "SUGGESTED_PATH_STATUSES",
    "FileRecord",
    "JournalItem",
    "JournalMark",
    "JournalOutcome",
    "ProcessingStatus",
    "UndoEntry",
    "normalize_path",
    "utcnow",
]
