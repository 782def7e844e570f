"""Content-based duplicate detection."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional

from sortwise.ingestion.detectors import HashComputer
from sortwise.state.models import FileRecord
from sortwise.state.store import RecordStore

from .models import DuplicateGroup

LOGGER = logging.getLogger(__name__)

KeeperPolicy = Literal["earliest_created", "latest_modified"]

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class DuplicateScanner:
    """Group records whose files have identical content.

    Files are first bucketed by size so only same-size candidates are hashed.
    Nothing is ever deleted.
    """

    def __init__(
        self,
        *,
        hasher: Optional[HashComputer] = None,
        keeper_policy: KeeperPolicy = "earliest_created",
        store: Optional[RecordStore] = None,
    ) -> None:
        """Configure the scanner.

        Args:
            hasher: Digest implementation; SHA-256 by default.
            keeper_policy: Which member of a group is recommended for keeping.
            store: Optional record store where computed digests are cached.
        """
        self._hasher = hasher or HashComputer()
        self._keeper_policy = keeper_policy
        self._store = store

    def find_duplicates(self, records: Iterable[FileRecord]) -> List[DuplicateGroup]:
        """Return duplicate groups ordered by reclaimable space, largest first."""
        by_size: Dict[int, List[FileRecord]] = defaultdict(list)
        for record in records:
            if record.size_bytes > 0:
                by_size[record.size_bytes].append(record)

        groups: List[DuplicateGroup] = []
        for size, candidates in by_size.items():
            if len(candidates) < 2:
                continue
            by_hash: Dict[str, List[FileRecord]] = defaultdict(list)
            for record in candidates:
                digest = self._digest(record)
                if digest is not None:
                    by_hash[digest].append(record)
            for digest, members in by_hash.items():
                if len(members) < 2:
                    continue
                groups.append(
                    DuplicateGroup(
                        content_hash=digest,
                        size_bytes=size,
                        paths=tuple(sorted(member.path for member in members)),
                        keeper=self._keeper(members),
                    )
                )

        groups.sort(key=lambda group: (-group.reclaimable_bytes, str(group.keeper)))
        LOGGER.debug("Found %d duplicate groups", len(groups))
        return groups

    def find_in_paths(self, paths: Iterable[Path]) -> List[DuplicateGroup]:
        """Stat ``paths`` and return their duplicate groups."""
        records: List[FileRecord] = []
        for path in paths:
            try:
                records.append(FileRecord.from_path(path))
            except OSError as exc:
                LOGGER.warning("Skipping %s: %s", path, exc)
        return self.find_duplicates(records)

    def _digest(self, record: FileRecord) -> Optional[str]:
        if record.content_hash:
            return record.content_hash
        try:
            digest = self._hasher.compute(record.path)
        except OSError as exc:
            LOGGER.warning("Cannot hash %s: %s", record.path, exc)
            return None
        if self._store is not None:
            self._store.update(
                record.path,
                lambda current: current.with_changes(content_hash=digest) if current is not None else None,
            )
        return digest

    def _keeper(self, members: List[FileRecord]) -> Path:
        if self._keeper_policy == "latest_modified":
            chosen = min(
                members,
                key=lambda record: (
                    -record.modified_at.timestamp() if record.modified_at else float("inf"),
                    len(str(record.path)),
                    str(record.path),
                ),
            )
        else:
            chosen = min(
                members,
                key=lambda record: (
                    record.created_at or record.modified_at or _FAR_FUTURE,
                    len(str(record.path)),
                    str(record.path),
                ),
            )
        return chosen.path


__all__ = ["DuplicateScanner", "KeeperPolicy"]
