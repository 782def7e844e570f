"""Classification pipeline driving records from detection to ``ANALYZED``."""

from __future__ import annotations

import fnmatch
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

from sortwise.events import EventHub
from sortwise.ingestion.discovery import DirectoryScanner
from sortwise.state.models import ALLOWED_TRANSITIONS, FileRecord, ProcessingStatus, normalize_path
from sortwise.state.store import RecordStore

from .ai import AIClassifier, TransportFailure
from .rules import GENERAL, HIGH_CONFIDENCE, MEDIUM_CONFIDENCE, UNKNOWN, RuleClassifier, extract_keywords

if TYPE_CHECKING:  # pragma: no cover
    from sortwise.organization.planner import DestinationPlanner

LOGGER = logging.getLogger(__name__)

SYSTEM_FILE_NAMES = frozenset({"thumbs.db", ".ds_store", "desktop.ini", "ehthumbs.db", "icon\r"})
PARTIAL_EXTENSIONS = frozenset({"crdownload", "part", "partial", "download", "tmp", "temp", "!ut"})

ReadyListener = Callable[[FileRecord], None]


class SkipPolicy:
    """Decide which paths are excluded from classification."""

    def __init__(
        self,
        *,
        include_hidden: bool = False,
        excluded_patterns: Iterable[str] = (),
    ) -> None:
        self._include_hidden = include_hidden
        self._patterns = tuple(pattern.lower() for pattern in excluded_patterns)

    @property
    def include_hidden(self) -> bool:
        """Return whether hidden files are processed."""
        return self._include_hidden

    def reason(self, path: Path) -> Optional[str]:
        """Return why ``path`` is skipped, or ``None`` when it should be processed."""
        name = path.name.lower()
        if name in SYSTEM_FILE_NAMES:
            return "system file"
        if path.suffix[1:].lower() in PARTIAL_EXTENSIONS or name.startswith("~$"):
            return "file is still being written"
        if not self._include_hidden and name.startswith("."):
            return "hidden file"
        for pattern in self._patterns:
            if fnmatch.fnmatch(name, pattern):
                return f"excluded by pattern {pattern!r}"
        return None


class ClassificationPipeline:
    """Classify files into tracked records.

    Rule classification runs on the calling thread. Results below the high
    confidence band are re-analyzed by the AI classifier (when configured) on
    a dedicated executor so slow AI calls never hold up the caller.
    """

    def __init__(
        self,
        store: RecordStore,
        rules: RuleClassifier,
        planner: "DestinationPlanner",
        *,
        ai: Optional[AIClassifier] = None,
        events: Optional[EventHub] = None,
        skip_policy: Optional[SkipPolicy] = None,
        ai_workers: int = 1,
    ) -> None:
        """Wire the pipeline to its collaborators.

        Args:
            store: Tracked record store.
            rules: Rule classifier.
            planner: Planner used to compute suggested destinations.
            ai: Optional AI classifier; ``None`` disables AI re-analysis.
            events: Observer hub for status, progress, and record notifications.
            skip_policy: Policy for excluded paths.
            ai_workers: Threads available for AI re-analysis.
        """
        self._store = store
        self._rules = rules
        self._planner = planner
        self._ai = ai
        self._events = events or EventHub()
        self._skip_policy = skip_policy or SkipPolicy()
        self._ai_executor = (
            ThreadPoolExecutor(max_workers=max(1, ai_workers), thread_name_prefix="sortwise-ai")
            if ai is not None
            else None
        )
        self._ai_futures: Dict[Path, Future[Optional[FileRecord]]] = {}
        self._ai_lock = threading.Lock()
        self._ready_listeners: List[ReadyListener] = []

    @property
    def ai_enabled(self) -> bool:
        """Return whether AI re-analysis is configured."""
        return self._ai is not None

    def add_ready_listener(self, listener: ReadyListener) -> None:
        """Register a callback for records that are analyzed and have no AI work pending."""
        self._ready_listeners.append(listener)

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def process(self, path: Path) -> Optional[FileRecord]:
        """Classify the file at ``path`` and store the resulting record.

        Processing a path whose record is ``SCANNING`` or ``ORGANIZING`` is a
        no-op that returns the current record.

        Args:
            path: File to classify.

        Returns:
            Optional[FileRecord]: The stored record after processing.
        """
        key = normalize_path(path)
        current = self._store.get(key)
        if current is not None and current.is_in_progress:
            LOGGER.debug("Ignoring %s: already %s", key, current.status.value)
            return current

        reason = self._skip_policy.reason(key)
        if reason is not None:
            return self.skip(key, reason)

        try:
            fresh = FileRecord.from_path(key)
        except OSError as exc:
            return self._fail_untracked(key, current, exc)

        claimed = self._store.update(key, lambda existing: self._begin_scan(existing, fresh))
        if claimed is None:
            return self._store.get(key)

        try:
            match = self._rules.classify(claimed.name, claimed.extension, claimed.size_bytes)
            if not claimed.path.is_file():
                raise FileNotFoundError(f"File disappeared before analysis: {claimed.path}")
        except OSError as exc:
            message = str(exc) or exc.__class__.__name__
            LOGGER.warning("Cannot classify %s: %s", key, message)
            failed = self._store.update(
                key,
                lambda existing: _to_failed(existing, message)
                if existing is not None and existing.status is ProcessingStatus.SCANNING
                else None,
            )
            return failed or self._store.get(key)

        category, sub_category = match.category, match.sub_category
        if match.confidence < MEDIUM_CONFIDENCE:
            category, sub_category = UNKNOWN, GENERAL
        wants_ai = self._ai is not None and match.confidence < HIGH_CONFIDENCE

        classified = claimed.with_changes(
            category=category,
            sub_category=sub_category,
            confidence=match.confidence,
            keywords=extract_keywords(claimed.name),
        )
        analyzed = classified.transition(
            ProcessingStatus.ANALYZED,
            suggested_path=self._planner.destination_for(classified),
            pending_ai=wants_ai,
        )
        stored = self._store.update(key, lambda existing: self._finish_scan(existing, analyzed))
        if stored is None:
            return self._store.get(key)

        LOGGER.debug(
            "Classified %s as %s/%s (%.2f via %s)",
            stored.name,
            stored.category,
            stored.sub_category,
            stored.confidence,
            match.rule,
        )
        self._events.record(stored)
        self._events.status(f"New file: {stored.name} -> {stored.category}/{stored.sub_category}")
        if wants_ai:
            self._submit_ai(stored)
        else:
            self._notify_ready(stored)
        return stored

    def refine_with_ai(self, path: Path) -> Optional[FileRecord]:
        """Run AI re-analysis for an analyzed record and clear its pending marker.

        The rule result is kept when the AI call fails or its answer is not
        usable.

        Returns:
            Optional[FileRecord]: The stored record afterwards, or ``None`` when
            the record is gone or no longer waiting for AI.
        """
        key = normalize_path(path)
        record = self._store.get(key)
        if record is None or not record.pending_ai or self._ai is None:
            return None

        result = self._ai.analyze(record)
        if isinstance(result, TransportFailure):
            applied, updated = False, record
            self._events.status(f"AI analysis unavailable for {record.name}: {result.kind.value}")
        else:
            applied, updated = self._ai.apply(record, result)
            if not applied:
                self._events.status(f"AI response for {record.name} ignored")

        if applied:
            updated = updated.with_changes(suggested_path=self._planner.destination_for(updated))

        def _finalize(current: Optional[FileRecord]) -> Optional[FileRecord]:
            if current is None or current.status is not ProcessingStatus.ANALYZED or not current.pending_ai:
                return None
            if current.modified_at != record.modified_at or current.size_bytes != record.size_bytes:
                # Re-processed while AI ran; the newer request owns the record.
                return None
            return updated.with_changes(pending_ai=False)

        finalized = self._store.update(key, _finalize)
        if finalized is None:
            return None
        if applied:
            self._events.status(
                f"AI refined {finalized.name} -> {finalized.category}/{finalized.sub_category}"
            )
        self._notify_ready(finalized)
        return finalized

    def skip(self, path: Path, reason: str) -> Optional[FileRecord]:
        """Mark ``path`` as excluded from classification and organization."""
        key = normalize_path(path)

        def _to_skipped(current: Optional[FileRecord]) -> Optional[FileRecord]:
            if current is None:
                try:
                    current = FileRecord.from_path(key)
                except OSError:
                    current = FileRecord(path=key, name=key.name, extension=key.suffix[1:].lower())
            if current.status is ProcessingStatus.SKIPPED:
                return current
            if ProcessingStatus.SKIPPED not in ALLOWED_TRANSITIONS[current.status]:
                return None
            return current.transition(ProcessingStatus.SKIPPED)

        skipped = self._store.update(key, _to_skipped)
        if skipped is not None:
            LOGGER.debug("Skipped %s: %s", key, reason)
        return skipped if skipped is not None else self._store.get(key)

    def scan_directory(
        self,
        root: Path,
        *,
        recursive: bool = False,
        scanner: Optional[DirectoryScanner] = None,
    ) -> List[FileRecord]:
        """Enumerate ``root`` and classify every file found.

        Args:
            root: Directory to scan.
            recursive: Whether subdirectories are scanned when no scanner is given.
            scanner: Scanner deciding which files are enumerated. The default
                scanner leaves out the organization root when it sits inside
                ``root``.

        Returns:
            List[FileRecord]: Stored records in scan order.
        """
        root = normalize_path(root)
        if scanner is None:
            organized = self._planner.root
            scanner = DirectoryScanner(
                recursive=recursive,
                include_hidden=self._skip_policy.include_hidden,
                follow_symlinks=False,
                exclude=(organized,) if root in organized.parents else (),
            )
        paths = list(scanner.scan(root))
        pending = [self._store.upsert(self._pending(path)) for path in paths if self._store.get(path) is None]
        LOGGER.debug("Queued %d new files from %s", len(pending), root)

        records: List[FileRecord] = []
        for index, path in enumerate(paths, start=1):
            record = self.process(path)
            if record is not None:
                records.append(record)
            self._events.progress("scan", index, len(paths))
        self._events.status(f"Scanned {len(paths)} files in {root}")
        return records

    def wait_for_ai(self, timeout: Optional[float] = None) -> bool:
        """Block until queued AI work finishes; return ``False`` on timeout."""
        with self._ai_lock:
            futures = list(self._ai_futures.values())
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_ai: bool = True) -> None:
        """Stop the AI executor."""
        if self._ai_executor is not None:
            self._ai_executor.shutdown(wait=wait_for_ai, cancel_futures=not wait_for_ai)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _pending(path: Path) -> FileRecord:
        try:
            return FileRecord.from_path(path)
        except OSError:
            return FileRecord(path=normalize_path(path), name=path.name)

    @staticmethod
    def _begin_scan(existing: Optional[FileRecord], fresh: FileRecord) -> Optional[FileRecord]:
        if existing is not None and existing.is_in_progress:
            return None
        base = existing or fresh
        scanning = base.transition(ProcessingStatus.SCANNING)
        return scanning.with_changes(
            name=fresh.name,
            extension=fresh.extension,
            size_bytes=fresh.size_bytes,
            created_at=fresh.created_at,
            modified_at=fresh.modified_at,
            category=None,
            sub_category=None,
            confidence=0.0,
            keywords=(),
            description=None,
            processed_at=None,
            content_hash=None,
        )

    @staticmethod
    def _finish_scan(existing: Optional[FileRecord], analyzed: FileRecord) -> Optional[FileRecord]:
        if existing is None or existing.status is not ProcessingStatus.SCANNING:
            return None
        return analyzed

    def _fail_untracked(
        self, key: Path, current: Optional[FileRecord], exc: OSError
    ) -> Optional[FileRecord]:
        message = str(exc) or exc.__class__.__name__
        LOGGER.warning("Cannot read %s: %s", key, message)

        def _fail(existing: Optional[FileRecord]) -> Optional[FileRecord]:
            base = existing or FileRecord(path=key, name=key.name, extension=key.suffix[1:].lower())
            if base.is_in_progress:
                return None
            return _to_failed(base, message)

        if current is None and isinstance(exc, FileNotFoundError):
            return None
        return self._store.update(key, _fail)

    def _submit_ai(self, record: FileRecord) -> None:
        if self._ai_executor is None:  # pragma: no cover - guarded by wants_ai
            return
        with self._ai_lock:
            future = self._ai_executor.submit(self.refine_with_ai, record.path)
            self._ai_futures[record.path] = future
        future.add_done_callback(lambda done, path=record.path: self._forget_future(path, done))

    def _forget_future(self, path: Path, future: Future[Optional[FileRecord]]) -> None:
        with self._ai_lock:
            if self._ai_futures.get(path) is future:
                del self._ai_futures[path]
        exc = future.exception()
        if exc is not None:  # pragma: no cover - refine_with_ai handles expected failures
            LOGGER.error("AI re-analysis of %s crashed: %s", path, exc)

    def _notify_ready(self, record: FileRecord) -> None:
        for listener in list(self._ready_listeners):
            try:
                listener(record)
            except Exception:  # pragma: no cover - listener bugs must not stop the pipeline
                LOGGER.exception("Ready listener failed for %s", record.path)


def _to_failed(record: FileRecord, message: str) -> Optional[FileRecord]:
    """Return ``record`` moved to ``FAILED`` through ``SCANNING`` when required."""
    if record.status is ProcessingStatus.FAILED:
        return record.with_changes(error_message=message)
    if ProcessingStatus.FAILED in ALLOWED_TRANSITIONS[record.status]:
        return record.transition(ProcessingStatus.FAILED, error_message=message)
    if ProcessingStatus.SCANNING in ALLOWED_TRANSITIONS[record.status]:
        return record.transition(ProcessingStatus.SCANNING).transition(
            ProcessingStatus.FAILED, error_message=message
        )
    return None


__all__ = ["ClassificationPipeline", "ReadyListener", "SkipPolicy"]
