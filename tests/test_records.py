"""Tests for tracked-record models and the in-memory record store."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from sortwise.state import (
    FileRecord,
    InMemoryRecordStore,
    InvalidTransitionError,
    ProcessingStatus,
)


def _record(tmp_path: Path, name: str = "report.pdf", content: bytes = b"data") -> FileRecord:
    path = tmp_path / name
    path.write_bytes(content)
    return FileRecord.from_path(path)


def test_from_path_reads_filesystem_metadata(tmp_path: Path) -> None:
    record = _record(tmp_path, "Holiday.JPG", b"12345")

    assert record.path == (tmp_path / "Holiday.JPG").resolve()
    assert record.name == "Holiday.JPG"
    assert record.extension == "jpg"
    assert record.size_bytes == 5
    assert record.status is ProcessingStatus.PENDING
    assert record.modified_at is not None
    assert record.created_at is not None
    assert record.suggested_path is None


def test_from_path_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        FileRecord.from_path(tmp_path / "missing.txt")


def test_analyzed_record_requires_suggested_path(tmp_path: Path) -> None:
    record = _record(tmp_path)

    with pytest.raises(ValidationError):
        record.with_changes(status=ProcessingStatus.ANALYZED, category="Documents")


def test_failed_record_requires_error_message(tmp_path: Path) -> None:
    record = _record(tmp_path)

    with pytest.raises(ValidationError):
        record.with_changes(status=ProcessingStatus.FAILED)


def test_transition_through_lifecycle(tmp_path: Path) -> None:
    record = _record(tmp_path)
    destination = tmp_path / "Organized" / "Documents" / "PDF" / "report.pdf"

    scanning = record.transition(ProcessingStatus.SCANNING)
    analyzed = scanning.transition(
        ProcessingStatus.ANALYZED,
        category="Documents",
        sub_category="PDF",
        confidence=0.9,
        suggested_path=destination,
    )
    organizing = analyzed.transition(ProcessingStatus.ORGANIZING)
    organized = organizing.transition(ProcessingStatus.ORGANIZED)

    assert organized.status is ProcessingStatus.ORGANIZED
    assert organized.suggested_path == destination
    assert record.status is ProcessingStatus.PENDING


def test_transition_clears_status_bound_fields(tmp_path: Path) -> None:
    record = _record(tmp_path)
    analyzed = record.transition(ProcessingStatus.SCANNING).transition(
        ProcessingStatus.ANALYZED,
        category="Documents",
        suggested_path=tmp_path / "out" / "report.pdf",
        pending_ai=True,
    )

    failed = analyzed.transition(ProcessingStatus.FAILED, error_message="disk vanished")

    assert failed.suggested_path is None
    assert failed.pending_ai is False
    assert failed.error_message == "disk vanished"

    rescanned = failed.transition(ProcessingStatus.SCANNING)
    assert rescanned.error_message is None


def test_invalid_transition_raises(tmp_path: Path) -> None:
    record = _record(tmp_path)

    with pytest.raises(InvalidTransitionError):
        record.transition(ProcessingStatus.ORGANIZED)


def test_pending_ai_only_for_analyzed(tmp_path: Path) -> None:
    record = _record(tmp_path)

    with pytest.raises(ValidationError):
        record.with_changes(pending_ai=True)


def test_store_update_is_keyed_by_resolved_path(tmp_path: Path) -> None:
    store = InMemoryRecordStore()
    record = _record(tmp_path)
    store.upsert(record)

    alias = tmp_path / "." / "report.pdf"
    assert store.get(alias) == record
    assert alias in store
    assert len(store) == 1

    updated = store.update(alias, lambda current: current.transition(ProcessingStatus.SKIPPED))

    assert updated is not None
    assert store.get(record.path).status is ProcessingStatus.SKIPPED


def test_store_update_declined_leaves_record(tmp_path: Path) -> None:
    store = InMemoryRecordStore()
    record = store.upsert(_record(tmp_path))

    assert store.update(record.path, lambda current: None) is None
    assert store.get(record.path) is record


def test_store_snapshot_is_sorted_and_remove_works(tmp_path: Path) -> None:
    store = InMemoryRecordStore()
    second = store.upsert(_record(tmp_path, "b.txt"))
    first = store.upsert(_record(tmp_path, "a.txt"))

    assert [item.name for item in store.snapshot()] == ["a.txt", "b.txt"]

    assert store.remove(first.path) == first
    assert store.snapshot() == [second]

    store.clear()
    assert len(store) == 0
