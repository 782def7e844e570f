"""Destination planning and conflict resolution for organize operations."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import AbstractSet, Iterable, Literal, Optional

from sortwise.classification.rules import GENERAL, UNKNOWN
from sortwise.ingestion.extractors import MetadataExtractor
from sortwise.state.models import FileRecord, utcnow

from .errors import ConflictUnresolved, ProtectedPathError

MONTH_ABBREVIATIONS = (
    "JAN",
    "FEB",
    "MAR",
    "APR",
    "MAY",
    "JUN",
    "JUL",
    "AUG",
    "SEP",
    "OCT",
    "NOV",
    "DEC",
)

PROTECTED_SEGMENTS = frozenset(
    {
        "system32",
        "windows",
        "program files",
        "program files (x86)",
        "programdata",
        "boot",
        "recovery",
        "$recycle.bin",
        "system volume information",
    }
)

MAX_DISAMBIGUATION_ATTEMPTS = 10_000


def month_folder(moment: datetime) -> str:
    """Return the ``MM-MON`` folder name for ``moment`` (for example ``03-MAR``)."""
    return f"{moment.month:02d}-{MONTH_ABBREVIATIONS[moment.month - 1]}"


def is_protected(path: Path) -> bool:
    """Return whether ``path`` lies inside an operating-system location."""
    return any(part.lower() in PROTECTED_SEGMENTS for part in path.parts)


def ensure_unprotected(path: Path) -> None:
    """Raise :class:`ProtectedPathError` when ``path`` must not be touched."""
    if is_protected(path):
        raise ProtectedPathError(f"Refusing to modify protected location: {path}")


def _same_file(first: Path, second: Path) -> bool:
    try:
        return first.samefile(second)
    except OSError:
        return False


class DestinationPlanner:
    """Compute where a classified record belongs under the organization root."""

    def __init__(
        self,
        root: Path,
        *,
        date_categories: Iterable[str] = ("Images", "Videos"),
        conflict_strategy: Literal["append_number", "timestamp"] = "append_number",
        extractor: Optional[MetadataExtractor] = None,
    ) -> None:
        self._root = root.expanduser().resolve()
        self._date_categories = frozenset(category.lower() for category in date_categories)
        self._conflict_strategy = conflict_strategy
        self._extractor = extractor or MetadataExtractor()

    @property
    def root(self) -> Path:
        """Return the organization root."""
        return self._root

    def destination_for(self, record: FileRecord) -> Path:
        """Return ``root/category/sub_category[/YYYY/MM-MON]/name`` for ``record``."""
        category = record.category or UNKNOWN
        target = (
            self._root
            / self._sanitize(category, UNKNOWN)
            / self._sanitize(record.sub_category or GENERAL, GENERAL)
        )
        if category.lower() in self._date_categories:
            moment = self.reference_date(record)
            target = target / f"{moment.year:04d}" / month_folder(moment)
        return target / record.name

    def reference_date(self, record: FileRecord) -> datetime:
        """Return the creation date used for year/month nesting.

        EXIF capture time wins for images, then the filesystem creation time,
        then the modification time.
        """
        captured = self._extractor.capture_date(record.path)
        return captured or record.created_at or record.modified_at or utcnow()

    def resolve_conflict(
        self,
        candidate: Path,
        source: Path,
        reserved: AbstractSet[Path] = frozenset(),
    ) -> Path:
        """Return ``candidate`` or the first free disambiguated variant of it.

        A candidate is free when nothing exists there (or only ``source`` itself)
        and no concurrent operation has reserved it.

        Raises:
            ConflictUnresolved: If no free name is found.
        """
        if self._is_free(candidate, source, reserved):
            return candidate

        stem, suffix = candidate.stem, candidate.suffix
        stamp = utcnow().strftime("%Y%m%d%H%M%S")
        for counter in range(1, MAX_DISAMBIGUATION_ATTEMPTS + 1):
            if self._conflict_strategy == "timestamp":
                tag = stamp if counter == 1 else f"{stamp}-{counter - 1}"
            else:
                tag = str(counter)
            option = candidate.with_name(f"{stem}-{tag}{suffix}")
            if self._is_free(option, source, reserved):
                return option

        raise ConflictUnresolved(f"No free destination name for {candidate}")

    @staticmethod
    def _is_free(path: Path, source: Path, reserved: AbstractSet[Path]) -> bool:
        if path in reserved:
            return False
        if not path.exists() and not path.is_symlink():
            return True
        return _same_file(path, source)

    @staticmethod
    def _sanitize(value: str, fallback: str) -> str:
        cleaned = re.sub(r'[<>:"/\\|?*\x00-\x1f]+', " ", value)
        cleaned = re.sub(r"\s+", " ", cleaned).strip().strip(".")
        return cleaned or fallback


__all__ = [
    "DestinationPlanner",
    "MONTH_ABBREVIATIONS",
    "PROTECTED_SEGMENTS",
    "ensure_unprotected",
    "is_protected",
    "month_folder",
]
