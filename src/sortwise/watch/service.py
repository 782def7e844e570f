"""Filesystem watch service feeding the classification pipeline."""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from sortwise.classification.pipeline import ClassificationPipeline
from sortwise.config.models import WatchSettings
from sortwise.events import EventHub
from sortwise.organization.engine import OrganizeEngine
from sortwise.state import DEFAULT_STATE_DIRNAME
from sortwise.state.models import FileRecord, ProcessingStatus, normalize_path
from sortwise.state.store import RecordStore

from .errors import WatchError

LOGGER = logging.getLogger(__name__)

CREATED = "created"
MODIFIED = "modified"
DELETED = "deleted"

Signature = Optional[Tuple[int, int]]


class _WatchEvent(NamedTuple):
    root: Optional[Path]
    path: Optional[Path]
    kind: str


_STOP = _WatchEvent(None, None, "stop")


@dataclass(slots=True)
class _PendingPath:
    """Debounce bookkeeping for one path awaiting stabilization."""

    root: Path
    last_event: float
    signature: Signature


def _signature(path: Path) -> Signature:
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_size, stat.st_mtime_ns


class FolderWatcher:
    """Monitor folders and hand stable new files to the pipeline.

    Events flow from the watchdog observer thread through a queue to a single
    debounce worker, which dispatches stable paths to a bounded worker pool.
    A path is never dispatched while an earlier task for it is still running.
    """

    def __init__(
        self,
        pipeline: ClassificationPipeline,
        engine: OrganizeEngine,
        store: RecordStore,
        *,
        settings: Optional[WatchSettings] = None,
        events: Optional[EventHub] = None,
        auto_organize: bool = False,
        auto_organize_min_confidence: float = 0.6,
        observer_factory: Callable[[], BaseObserver] = Observer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Wire the watcher to the pipeline and engine.

        Args:
            pipeline: Pipeline classifying stable files.
            engine: Engine used for auto-organize.
            store: Tracked record store.
            settings: Debounce, pool, and recursion settings.
            events: Observer hub for status notifications.
            auto_organize: Whether ready records are moved without confirmation.
            auto_organize_min_confidence: Confidence floor for auto-organize.
            observer_factory: Factory for the watchdog observer.
            clock: Monotonic clock, replaceable in tests.
        """
        self._pipeline = pipeline
        self._engine = engine
        self._store = store
        self._settings = settings or WatchSettings()
        self._events = events or EventHub()
        self._auto_organize = auto_organize
        self._min_confidence = auto_organize_min_confidence
        self._observer_factory = observer_factory
        self._clock = clock

        self._lock = threading.Lock()
        self._roots: Dict[Path, ObservedWatch] = {}
        self._transient_roots: Set[Path] = set()
        self._pending: Dict[Path, _PendingPath] = {}
        self._in_flight: Set[Path] = set()
        self._departed: Set[Path] = set()
        self._queue: queue.Queue[_WatchEvent] = queue.Queue()
        self._stop_event = threading.Event()
        self._observer: Optional[BaseObserver] = None
        self._worker: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._last_tick = 0.0

        self._pipeline.add_ready_listener(self._on_ready)

    @property
    def roots(self) -> List[Path]:
        """Return the folders currently watched."""
        with self._lock:
            return sorted(self._roots)

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def start_watching(self, root: Path) -> bool:
        """Begin monitoring ``root``.

        Returns:
            bool: ``False`` when ``root`` is not a directory or already watched.
        """
        resolved = normalize_path(root)
        if not resolved.is_dir():
            LOGGER.warning("Cannot watch %s: not a directory", resolved)
            return False

        with self._lock:
            if resolved in self._roots:
                return False
            self._ensure_running()
            assert self._observer is not None
            handler = _WatchEventHandler(resolved, self._queue)
            self._roots[resolved] = self._observer.schedule(
                handler, str(resolved), recursive=self._settings.recursive
            )
        self._events.status(f"Watching {resolved}")
        return True

    def stop_watching(self, root: Optional[Path] = None) -> None:
        """Stop monitoring ``root``, or every folder when omitted.

        Pending debounce entries for the folder are dropped; tasks already
        running finish normally.
        """
        with self._lock:
            if root is None:
                targets = list(self._roots)
            else:
                resolved = normalize_path(root)
                targets = [resolved] if resolved in self._roots else []
            for target in targets:
                watch = self._roots.pop(target)
                if self._observer is not None:
                    try:
                        self._observer.unschedule(watch)
                    except (KeyError, OSError) as exc:
                        LOGGER.debug("Unschedule of %s failed: %s", target, exc)
                for path in [path for path, entry in self._pending.items() if entry.root == target]:
                    del self._pending[path]
        for target in targets:
            self._events.status(f"Stopped watching {target}")

    def close(self) -> None:
        """Stop every folder, the debounce worker, and the worker pool."""
        self.stop_watching()
        self._stop_event.set()
        self._queue.put(_STOP)
        with self._lock:
            observer, worker, executor = self._observer, self._worker, self._executor
            self._observer = self._worker = self._executor = None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        if worker is not None:
            worker.join(timeout=5)
        if executor is not None:
            executor.shutdown(wait=True)

    def scan_once(self, roots: Iterable[Path]) -> List[FileRecord]:
        """Classify the files already present in ``roots`` without watching them.

        Auto-organize applies to these files as it would to watched ones. Queued
        AI work is awaited before returning.
        """
        targets = [normalize_path(root) for root in roots]
        with self._lock:
            self._transient_roots.update(targets)
        records: List[FileRecord] = []
        try:
            for root in targets:
                records.extend(self._pipeline.scan_directory(root, recursive=self._settings.recursive))
            self._pipeline.wait_for_ai()
        finally:
            with self._lock:
                self._transient_roots.difference_update(targets)
        return [self._store.get(record.path) or record for record in records]

    def __enter__(self) -> "FolderWatcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Debounce worker                                                    #
    # ------------------------------------------------------------------ #

    def _ensure_running(self) -> None:
        if self._observer is None:
            self._stop_event.clear()
            self._observer = self._observer_factory()
            self._observer.start()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._settings.worker_count, thread_name_prefix="sortwise-watch"
            )
        if self._worker is None:
            self._worker = threading.Thread(
                target=self._run_loop, name="sortwise-debounce", daemon=True
            )
            self._worker.start()

    def _run_loop(self) -> None:
        interval = self._settings.scan_interval_seconds
        while not self._stop_event.is_set():
            try:
                event = self._queue.get(timeout=interval)
            except queue.Empty:
                event = None
            if event is not None and event.path is None:
                break
            if event is not None:
                self._handle_event(event)
            now = self._clock()
            if now - self._last_tick >= interval:
                self._last_tick = now
                self._tick(now)

    def _handle_event(self, event: _WatchEvent) -> None:
        assert event.root is not None and event.path is not None
        root, path = event.root, event.path
        with self._lock:
            if root not in self._roots:
                return
        if event.kind == DELETED:
            if path == root:
                self._lose_root(root)
                return
            self._forget(path)
            return
        if not self._in_scope(root, path):
            return
        with self._lock:
            self._pending[path] = _PendingPath(root, self._clock(), _signature(path))

    def _tick(self, now: float) -> None:
        with self._lock:
            roots = list(self._roots)
        for root in roots:
            if not root.is_dir():
                self._lose_root(root)

        ready: List[Tuple[Path, Path]] = []
        with self._lock:
            for path, entry in list(self._pending.items()):
                if now - entry.last_event < self._settings.stabilization_seconds:
                    continue
                current = _signature(path)
                if current is None:
                    del self._pending[path]
                    continue
                if current != entry.signature or path in self._in_flight:
                    entry.signature = current
                    entry.last_event = now
                    continue
                del self._pending[path]
                self._in_flight.add(path)
                ready.append((entry.root, path))

        for root, path in ready:
            self._dispatch(root, path)

    def _dispatch(self, root: Path, path: Path) -> None:
        executor = self._executor
        if executor is None:
            with self._lock:
                self._in_flight.discard(path)
            return
        future = executor.submit(self._process, path)
        future.add_done_callback(lambda done, path=path: self._finish(path, done))

    def _process(self, path: Path) -> Optional[FileRecord]:
        return self._pipeline.process(path)

    def _finish(self, path: Path, future: Future[Optional[FileRecord]]) -> None:
        with self._lock:
            self._in_flight.discard(path)
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Processing %s failed: %s", path, exc)
            self._events.status(f"Failed to process {path.name}: {exc}")

    def _forget(self, path: Path) -> None:
        with self._lock:
            self._pending.pop(path, None)
        record = self._store.get(path)
        if record is None:
            return
        if record.status is ProcessingStatus.ORGANIZING:
            # The engine's own move; settled once the organize call returns.
            with self._lock:
                self._departed.add(path)
            return
        if record.status is ProcessingStatus.ORGANIZED:
            destination = record.suggested_path
            root = self._watched_root_of(destination) if destination is not None else None
            if root is not None and self._in_scope(root, destination):
                return
            self._store.remove(path)
            LOGGER.debug("Stopped tracking %s: organized to %s", path, destination)
            return
        self._store.remove(path)
        LOGGER.debug("Stopped tracking %s: removed from watched folder", path)

    def _lose_root(self, root: Path) -> None:
        error = WatchError(f"Watched folder is no longer available: {root}")
        LOGGER.error("%s", error)
        self._events.status(str(error))
        self.stop_watching(root)

    def _in_scope(self, root: Path, path: Path) -> bool:
        if DEFAULT_STATE_DIRNAME in path.parts:
            return False
        if root not in path.parents:
            return False
        if not self._settings.recursive and path.parent != root:
            return False
        organized = self._engine.planner.root
        # Organized output nested inside a watched folder must not loop back.
        if root in organized.parents and organized in path.parents:
            return False
        return path.is_file()

    def _watched_root_of(self, path: Path) -> Optional[Path]:
        with self._lock:
            for root in (*self._roots, *self._transient_roots):
                if root in path.parents:
                    return root
        return None

    def _on_ready(self, record: FileRecord) -> None:
        if not self._auto_organize or record.status is not ProcessingStatus.ANALYZED:
            return
        if record.confidence < self._min_confidence:
            LOGGER.debug(
                "Not auto-organizing %s: confidence %.2f below %.2f",
                record.name,
                record.confidence,
                self._min_confidence,
            )
            return
        if self._watched_root_of(record.path) is None:
            return
        self._engine.organize([record])
        with self._lock:
            departed = record.path in self._departed
            self._departed.discard(record.path)
        if departed:
            self._forget(record.path)


class _WatchEventHandler(FileSystemEventHandler):
    """Forward filesystem events into the watcher queue."""

    def __init__(self, root: Path, queue_handle: queue.Queue[_WatchEvent]) -> None:
        self._root = root
        self._queue = queue_handle

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        self._enqueue(event.src_path, CREATED, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        self._enqueue(event.src_path, MODIFIED, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a filesystem delete event."""
        self._enqueue(event.src_path, DELETED, False)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a filesystem move as a delete of the source and a create of the target."""
        self._enqueue(event.src_path, DELETED, False)
        self._enqueue(event.dest_path, CREATED, event.is_directory)

    def _enqueue(self, raw: str | bytes, kind: str, is_directory: bool) -> None:
        if is_directory:
            return
        text = raw.decode() if isinstance(raw, bytes) else raw
        path = Path(text).expanduser().absolute()
        if DEFAULT_STATE_DIRNAME in path.parts:
            return
        self._queue.put(_WatchEvent(self._root, path, kind))


__all__ = ["FolderWatcher"]
