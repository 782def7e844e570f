"""Heuristics that flag files worth cleaning up."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from sortwise.config.models import CleanupSettings
from sortwise.state.models import FileRecord, utcnow

from .models import CleanupCandidate, CleanupReason

LOGGER = logging.getLogger(__name__)

TEMP_FILENAMES = frozenset(
    {
        "thumbs.db",
        "ehthumbs.db",
        "ehthumbs_vista.db",
        ".ds_store",
        "desktop.ini",
        "albumartsmall.jpg",
    }
)
TEMP_EXTENSIONS = frozenset({"tmp", "temp", "crdownload", "part"})
CACHE_DIRECTORIES = frozenset({"cache", ".cache", "caches", "temp", "tmp", ".tmp", "temporary"})
BACKUP_EXTENSIONS = frozenset({"bak", "old", "orig", "backup"})
INSTALLER_EXTENSIONS = frozenset({"exe", "msi", "dmg", "pkg", "deb", "rpm", "appimage"})

_MEGABYTE = 1024 * 1024


class CleanupScanner:
    """Flag records that look like clutter.

    Every matching heuristic is reported as a reason; the candidate's safety
    is the most cautious level among them. Nothing is ever deleted.
    """

    def __init__(self, settings: Optional[CleanupSettings] = None) -> None:
        self._settings = settings or CleanupSettings()
        self._low_value_dirs = frozenset(name.lower() for name in self._settings.low_value_dirs)

    def find_candidates(
        self,
        records: Iterable[FileRecord],
        now: Optional[datetime] = None,
        *,
        root: Optional[Path] = None,
    ) -> List[CleanupCandidate]:
        """Return cleanup candidates, safest first and larger files first within a level.

        Args:
            records: Records to inspect.
            now: Reference time for age checks; defaults to the current time.
            root: Scan root. Directory-based heuristics only look at folders
                below it; without a root only the file's own folder is checked.
        """
        reference = now or utcnow()
        candidates: List[CleanupCandidate] = []
        for record in records:
            reasons = self.reasons_for(record, reference, root=root)
            if reasons:
                candidates.append(CleanupCandidate.from_reasons(record.path, record.size_bytes, reasons))
        candidates.sort(key=lambda candidate: (candidate.safety.rank, -candidate.size_bytes, str(candidate.path)))
        LOGGER.debug("Found %d cleanup candidates", len(candidates))
        return candidates

    def reasons_for(
        self, record: FileRecord, now: datetime, *, root: Optional[Path] = None
    ) -> Tuple[CleanupReason, ...]:
        """Return every cleanup reason that applies to ``record``."""
        name = record.name.lower()
        extension = record.extension.lower()
        folders = self._folders(record.path, root)
        age = now - record.modified_at if record.modified_at is not None else timedelta(0)
        stale = age > timedelta(days=self._settings.stale_age_days)

        reasons: List[CleanupReason] = []
        if record.size_bytes == 0:
            reasons.append(CleanupReason.EMPTY_FILE)
        if (
            name in TEMP_FILENAMES
            or extension in TEMP_EXTENSIONS
            or name.startswith("~$")
            or ".tmp." in name
        ):
            reasons.append(CleanupReason.TEMPORARY_FILE)
        if extension == "cache" or folders & CACHE_DIRECTORIES:
            reasons.append(CleanupReason.CACHE_FILE)
        if (
            extension in BACKUP_EXTENSIONS
            or name.endswith("~")
            or name.startswith("copy of")
            or "backup" in name
            or " - copy" in name
        ):
            reasons.append(CleanupReason.BACKUP_FILE)
        if stale and folders & self._low_value_dirs:
            reasons.append(CleanupReason.STALE_LOW_VALUE)
        if extension in INSTALLER_EXTENSIONS and age > timedelta(days=self._settings.installer_age_days):
            reasons.append(CleanupReason.OLD_INSTALLER)
        if stale and record.size_bytes >= self._settings.large_file_mb * _MEGABYTE:
            reasons.append(CleanupReason.LARGE_UNUSED)
        return tuple(reasons)

    @staticmethod
    def _folders(path: Path, root: Optional[Path]) -> frozenset[str]:
        if root is not None:
            try:
                relative = path.parent.relative_to(root.expanduser().resolve())
            except ValueError:
                relative = Path(path.parent.name)
            return frozenset(part.lower() for part in relative.parts)
        return frozenset({path.parent.name.lower()})


__all__ = ["CleanupScanner"]
