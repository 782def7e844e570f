"""Data models for duplicate groups and cleanup candidates."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SafetyLevel(str, Enum):
    """How safe it is to delete a candidate, from safest to most cautious."""

    SAFE = "safe"
    LIKELY_SAFE = "likely_safe"
    CAUTION = "caution"
    USER_DECISION = "user_decision"

    @property
    def rank(self) -> int:
        """Return the position of the level; higher is more cautious."""
        return _SAFETY_ORDER.index(self)


_SAFETY_ORDER = (
    SafetyLevel.SAFE,
    SafetyLevel.LIKELY_SAFE,
    SafetyLevel.CAUTION,
    SafetyLevel.USER_DECISION,
)


class CleanupReason(str, Enum):
    """Why a file was flagged for cleanup."""

    EMPTY_FILE = "empty_file"
    TEMPORARY_FILE = "temporary_file"
    CACHE_FILE = "cache_file"
    BACKUP_FILE = "backup_file"
    STALE_LOW_VALUE = "stale_low_value"
    OLD_INSTALLER = "old_installer"
    LARGE_UNUSED = "large_unused"

    @property
    def safety(self) -> SafetyLevel:
        """Return the default safety level for the reason."""
        return _REASON_SAFETY[self]


_REASON_SAFETY = {
    CleanupReason.EMPTY_FILE: SafetyLevel.SAFE,
    CleanupReason.TEMPORARY_FILE: SafetyLevel.SAFE,
    CleanupReason.CACHE_FILE: SafetyLevel.SAFE,
    CleanupReason.STALE_LOW_VALUE: SafetyLevel.LIKELY_SAFE,
    CleanupReason.BACKUP_FILE: SafetyLevel.CAUTION,
    CleanupReason.OLD_INSTALLER: SafetyLevel.CAUTION,
    CleanupReason.LARGE_UNUSED: SafetyLevel.USER_DECISION,
}


class DuplicateGroup(BaseModel):
    """Files with identical content.

    Attributes:
        content_hash: Hex digest shared by every file in the group.
        size_bytes: Size of each file.
        paths: Member paths, sorted.
        keeper: Member recommended for keeping.
    """

    model_config = ConfigDict(frozen=True)

    content_hash: str
    size_bytes: int = Field(gt=0)
    paths: Tuple[Path, ...]
    keeper: Path

    @model_validator(mode="after")
    def _check_members(self) -> "DuplicateGroup":
        if len(self.paths) < 2:
            raise ValueError("a duplicate group needs at least two files")
        if tuple(sorted(self.paths)) != self.paths:
            raise ValueError("duplicate group paths must be sorted")
        if self.keeper not in self.paths:
            raise ValueError("keeper must be a member of the group")
        return self

    @property
    def redundant(self) -> Tuple[Path, ...]:
        """Return the members other than the keeper."""
        return tuple(path for path in self.paths if path != self.keeper)

    @property
    def reclaimable_bytes(self) -> int:
        """Return the space freed by removing the redundant copies."""
        return self.size_bytes * len(self.redundant)


class CleanupCandidate(BaseModel):
    """A file that may be worth deleting.

    Attributes:
        path: File location.
        size_bytes: File size.
        reasons: Every reason the file was flagged.
        safety: Most cautious safety level among the reasons.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: int = Field(ge=0)
    reasons: Tuple[CleanupReason, ...]
    safety: SafetyLevel

    @model_validator(mode="after")
    def _check_reasons(self) -> "CleanupCandidate":
        if not self.reasons:
            raise ValueError("a cleanup candidate needs at least one reason")
        expected = max((reason.safety for reason in self.reasons), key=lambda level: level.rank)
        if self.safety is not expected:
            raise ValueError(f"safety must be {expected.value} for reasons {self.reasons}")
        return self

    @classmethod
    def from_reasons(cls, path: Path, size_bytes: int, reasons: Tuple[CleanupReason, ...]) -> "CleanupCandidate":
        """Build a candidate whose safety follows from ``reasons``."""
        safety = max((reason.safety for reason in reasons), key=lambda level: level.rank, default=SafetyLevel.SAFE)
        return cls(path=path, size_bytes=size_bytes, reasons=reasons, safety=safety)


__all__ = ["CleanupCandidate", "CleanupReason", "DuplicateGroup", "SafetyLevel"]
