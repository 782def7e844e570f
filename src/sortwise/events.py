"""Observer hub for status strings, progress counts, and record notifications."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List

from sortwise.state.models import FileRecord

LOGGER = logging.getLogger(__name__)

StatusObserver = Callable[[str], None]
RecordObserver = Callable[[FileRecord], None]


@dataclass(frozen=True, slots=True)
class Progress:
    """Structured progress emitted during batch work.

    Attributes:
        operation: Short identifier such as ``scan`` or ``organize``.
        processed: Items finished so far.
        total: Items in the batch.
    """

    operation: str
    processed: int
    total: int


ProgressObserver = Callable[[Progress], None]


class EventHub:
    """Fan out engine notifications to any number of observers.

    Observer failures are logged and never propagate into the engine.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status: List[StatusObserver] = []
        self._progress: List[ProgressObserver] = []
        self._records: List[RecordObserver] = []

    def add_status_observer(self, observer: StatusObserver) -> None:
        with self._lock:
            self._status.append(observer)

    def add_progress_observer(self, observer: ProgressObserver) -> None:
        with self._lock:
            self._progress.append(observer)

    def add_record_observer(self, observer: RecordObserver) -> None:
        """Register a callback for records entering ``ANALYZED`` or ``ORGANIZED``."""
        with self._lock:
            self._records.append(observer)

    def status(self, message: str) -> None:
        LOGGER.info(message)
        with self._lock:
            observers = list(self._status)
        for observer in observers:
            self._call(observer, message)

    def progress(self, operation: str, processed: int, total: int) -> None:
        update = Progress(operation=operation, processed=processed, total=total)
        with self._lock:
            observers = list(self._progress)
        for observer in observers:
            self._call(observer, update)

    def record(self, record: FileRecord) -> None:
        with self._lock:
            observers = list(self._records)
        for observer in observers:
            self._call(observer, record)

    @staticmethod
    def _call(observer: Callable[[object], None], payload: object) -> None:
        try:
            observer(payload)
        except Exception:  # pragma: no cover - observer bugs must not stop the engine
            LOGGER.exception("Observer %r failed", observer)


__all__ = ["EventHub", "Progress", "ProgressObserver", "RecordObserver", "StatusObserver"]
