"""Move classified files into place with a write-ahead undo journal."""

from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional

from sortwise.events import EventHub
from sortwise.state import JournalError, JournalOutcome, UndoEntry, UndoJournal
from sortwise.state.models import FileRecord, ProcessingStatus, utcnow
from sortwise.state.store import RecordStore

from .errors import OrganizeError
from .planner import DestinationPlanner, ensure_unprotected

LOGGER = logging.getLogger(__name__)


class BatchCounts(NamedTuple):
    """Success and failure totals for a batch operation."""

    success: int
    failure: int


@dataclass(slots=True)
class ReconcileReport:
    """Outcome of :meth:`OrganizeEngine.reconcile`.

    Attributes:
        rolled_forward: Entries whose move had completed; now marked committed.
        abandoned: Entries whose move never happened; now marked abandoned.
        unresolved: Entries whose files are in an ambiguous state.
    """

    rolled_forward: List[UndoEntry] = field(default_factory=list)
    abandoned: List[UndoEntry] = field(default_factory=list)
    unresolved: List[UndoEntry] = field(default_factory=list)


def _same_file(first: Path, second: Path) -> bool:
    try:
        return first.samefile(second)
    except OSError:
        return False


class OrganizeEngine:
    """Apply and reverse organize operations for tracked records.

    Every move is journaled before it happens. A failed move leaves an
    unresolved journal entry that :meth:`reconcile` can inspect later; entries
    are never replayed automatically.
    """

    def __init__(
        self,
        store: RecordStore,
        journal: UndoJournal,
        planner: DestinationPlanner,
        *,
        events: Optional[EventHub] = None,
        announce: bool = True,
    ) -> None:
        """Wire the engine to its collaborators.

        Args:
            store: Tracked records, updated as files move.
            journal: Undo journal receiving write-ahead entries.
            planner: Destination planner and conflict resolver.
            events: Observer hub for progress, status, and record notifications.
            announce: Whether each organized file is reported on the status channel.
        """
        self._store = store
        self._journal = journal
        self._planner = planner
        self._events = events or EventHub()
        self._announce = announce
        self._directory_lock = threading.Lock()
        self._reservation_lock = threading.Lock()
        self._reserved: set[Path] = set()

    @property
    def journal(self) -> UndoJournal:
        """Return the undo journal."""
        return self._journal

    @property
    def planner(self) -> DestinationPlanner:
        """Return the destination planner."""
        return self._planner

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def organize(self, records: Iterable[FileRecord]) -> BatchCounts:
        """Move analyzed records to their destinations.

        Records that are not ``ANALYZED`` in the store when their turn comes
        (already organizing, organized, failed, or gone) are skipped and
        counted in neither total. A file already at its destination becomes
        ``ORGANIZED`` without a journal entry and is not counted either.

        Args:
            records: Records to organize.

        Returns:
            BatchCounts: Number of files moved and number that failed.
        """
        items = list(records)
        success = failure = 0
        for index, record in enumerate(items, start=1):
            outcome = self._organize_one(record)
            if outcome is True:
                success += 1
            elif outcome is False:
                failure += 1
            self._events.progress("organize", index, len(items))
        if items:
            LOGGER.info("Organize finished: %d moved, %d failed", success, failure)
        return BatchCounts(success, failure)

    def undo(self, entries: Iterable[UndoEntry]) -> BatchCounts:
        """Reverse journal entries, newest first.

        Args:
            entries: Entries in the order they were written.

        Returns:
            BatchCounts: Number of entries reversed and number that failed.
        """
        ordered = list(entries)[::-1]
        success = failure = 0
        for index, entry in enumerate(ordered, start=1):
            if self._undo_one(entry):
                success += 1
            else:
                failure += 1
            self._events.progress("undo", index, len(ordered))
        if ordered:
            self._events.status(f"Undo finished: {success} restored, {failure} failed")
        return BatchCounts(success, failure)

    def undo_last(self, count: Optional[int] = None) -> BatchCounts:
        """Reverse the most recent ``count`` committed moves (all when omitted)."""
        entries = self._journal.undoable()
        if count is not None:
            entries = entries[-count:] if count > 0 else []
        return self.undo(entries)

    def reconcile(self) -> ReconcileReport:
        """Resolve journal entries left without a final outcome.

        Intended to run when no organize batch is in flight, such as at startup.
        """
        report = ReconcileReport()
        for entry in self._journal.unresolved():
            at_new = entry.new_path.exists()
            at_original = entry.original_path.exists()
            if at_new and not at_original:
                self._journal.mark(entry, JournalOutcome.COMMITTED, "reconciled: move had completed")
                report.rolled_forward.append(entry)
            elif at_original and not at_new:
                self._journal.mark(entry, JournalOutcome.ABANDONED, "reconciled: move never happened")
                report.abandoned.append(entry)
            else:
                report.unresolved.append(entry)
        if report.rolled_forward or report.abandoned:
            LOGGER.info(
                "Reconciled journal: %d rolled forward, %d abandoned, %d still unresolved",
                len(report.rolled_forward),
                len(report.abandoned),
                len(report.unresolved),
            )
        return report

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _organize_one(self, record: FileRecord) -> Optional[bool]:
        claimed = self._store.update(record.path, self._claim)
        if claimed is None:
            LOGGER.debug("Skipping %s: not in an organizable state", record.path)
            return None

        source = claimed.path
        planned = claimed.suggested_path or self._planner.destination_for(claimed)
        try:
            ensure_unprotected(source)
            ensure_unprotected(planned)
            if not source.is_file():
                raise FileNotFoundError(f"Source file no longer exists: {source}")
            if _same_file(planned, source):
                # Not journaled, so not counted as a move.
                LOGGER.debug("%s is already at its destination", source)
                self._complete(claimed, planned)
                return None
            destination = self._reserve(planned, source)
        except (OSError, OrganizeError) as exc:
            self._fail(claimed, exc)
            return False

        try:
            try:
                entry = self._journal.record_intent(source, destination, claimed.size_bytes)
            except JournalError as exc:
                self._fail(claimed, exc)
                return False

            try:
                self._ensure_parent(destination)
                if destination.exists():
                    raise FileExistsError(f"Destination appeared during the move: {destination}")
                shutil.move(str(source), str(destination))
            except OSError as exc:
                self._mark_quietly(entry, JournalOutcome.UNRESOLVED, str(exc))
                self._fail(claimed, exc)
                return False
        finally:
            self._release(destination)

        self._mark_quietly(entry, JournalOutcome.COMMITTED)
        self._complete(claimed, destination)
        return True

    def _undo_one(self, entry: UndoEntry) -> bool:
        if self._journal.outcome_of(entry.entry_id) is JournalOutcome.REVERTED:
            LOGGER.warning("Journal entry %s was already reverted", entry.entry_id)
            return False
        if not entry.new_path.is_file():
            LOGGER.warning("Cannot undo %s: %s no longer exists", entry.original_path.name, entry.new_path)
            return False

        try:
            ensure_unprotected(entry.original_path)
            target = self._reserve(entry.original_path, entry.new_path)
        except OrganizeError as exc:
            LOGGER.warning("Cannot undo %s: %s", entry.new_path, exc)
            return False

        try:
            self._ensure_parent(target)
            shutil.move(str(entry.new_path), str(target))
        except OSError as exc:
            LOGGER.warning("Cannot undo %s: %s", entry.new_path, exc)
            return False
        finally:
            self._release(target)

        note = None if target == entry.original_path else f"restored to {target}"
        self._mark_quietly(entry, JournalOutcome.REVERTED, note)
        self._restore_record(entry.original_path, target)
        return True

    @staticmethod
    def _claim(current: Optional[FileRecord]) -> Optional[FileRecord]:
        if current is None or current.status is not ProcessingStatus.ANALYZED:
            return None
        return current.transition(ProcessingStatus.ORGANIZING)

    def _complete(self, claimed: FileRecord, destination: Path) -> None:
        def _finish(current: Optional[FileRecord]) -> FileRecord:
            base = current if current is not None and current.status is ProcessingStatus.ORGANIZING else claimed
            return base.transition(
                ProcessingStatus.ORGANIZED,
                suggested_path=destination,
                processed_at=utcnow(),
            )

        organized = self._store.update(claimed.path, _finish)
        if organized is None:  # pragma: no cover - _finish always returns a record
            return
        self._events.record(organized)
        if self._announce:
            self._events.status(f"Organized {organized.name} -> {destination}")

    def _fail(self, claimed: FileRecord, exc: BaseException) -> None:
        message = str(exc) or exc.__class__.__name__
        LOGGER.warning("Failed to organize %s: %s", claimed.path, message)

        def _to_failed(current: Optional[FileRecord]) -> FileRecord:
            base = current if current is not None and current.status is ProcessingStatus.ORGANIZING else claimed
            return base.transition(ProcessingStatus.FAILED, error_message=message)

        self._store.update(claimed.path, _to_failed)

    def _restore_record(self, original: Path, restored: Path) -> None:
        snapshot = self._store.get(original)
        if snapshot is None or snapshot.status is not ProcessingStatus.ORGANIZED:
            return
        # Planning can read EXIF data; never under the store lock.
        destination = self._planner.destination_for(
            snapshot.with_changes(path=restored, name=restored.name, processed_at=None)
        )

        def _back_to_analyzed(current: Optional[FileRecord]) -> Optional[FileRecord]:
            if current is None or current.status is not ProcessingStatus.ORGANIZED:
                return None
            moved = current.with_changes(
                path=restored,
                name=restored.name,
                processed_at=None,
            )
            return moved.transition(ProcessingStatus.ANALYZED, suggested_path=destination)

        updated = self._store.update(original, _back_to_analyzed)
        if updated is not None:
            self._events.record(updated)

    def _reserve(self, candidate: Path, source: Path) -> Path:
        with self._reservation_lock:
            destination = self._planner.resolve_conflict(candidate, source, self._reserved)
            self._reserved.add(destination)
            return destination

    def _release(self, destination: Path) -> None:
        with self._reservation_lock:
            self._reserved.discard(destination)

    def _ensure_parent(self, destination: Path) -> None:
        with self._directory_lock:
            destination.parent.mkdir(parents=True, exist_ok=True)

    def _mark_quietly(
        self, entry: UndoEntry, outcome: JournalOutcome, message: Optional[str] = None
    ) -> None:
        try:
            self._journal.mark(entry, outcome, message)
        except JournalError as exc:
            LOGGER.error(
                "Could not record %s for journal entry %s (%s -> %s): %s",
                outcome.value,
                entry.entry_id,
                entry.original_path,
                entry.new_path,
                exc,
            )


__all__ = ["BatchCounts", "OrganizeEngine", "ReconcileReport"]
