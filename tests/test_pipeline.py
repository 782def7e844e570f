"""Tests for the classification pipeline."""

from pathlib import Path
from typing import List

from sortwise.classification import (
    AIClassifier,
    AIRequest,
    ClassificationPipeline,
    RuleClassifier,
    SkipPolicy,
)
from sortwise.classification.ai import AI_KEYWORD
from sortwise.classification.errors import AITimeout
from sortwise.events import EventHub, Progress
from sortwise.organization import DestinationPlanner
from sortwise.state import FileRecord, InMemoryRecordStore, ProcessingStatus


class StaticTransport:
    """Transport answering every request with the same text."""

    def __init__(self, response: object) -> None:
        self.response = response
        self.requests: List[AIRequest] = []

    def complete(self, request: AIRequest) -> str:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return str(self.response)

    def check_credentials(self) -> bool:
        return True


def _pipeline(tmp_path: Path, *, transport=None, events=None, skip_policy=None):
    store = InMemoryRecordStore()
    planner = DestinationPlanner(tmp_path / "Organized")
    ai = AIClassifier(transport, confidence_threshold=0.7) if transport is not None else None
    pipeline = ClassificationPipeline(
        store,
        RuleClassifier(),
        planner,
        ai=ai,
        events=events,
        skip_policy=skip_policy,
    )
    return pipeline, store, planner


def _write(directory: Path, name: str, content: str = "content") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return path


def test_high_confidence_file_is_analyzed_with_destination(tmp_path: Path) -> None:
    pipeline, store, planner = _pipeline(tmp_path)
    path = _write(tmp_path / "inbox", "meeting_notes.docx")

    record = pipeline.process(path)

    assert record is not None
    assert record.status is ProcessingStatus.ANALYZED
    assert (record.category, record.sub_category) == ("Documents", "Meeting Notes")
    assert record.suggested_path == planner.root / "Documents" / "Meeting Notes" / "meeting_notes.docx"
    assert record.pending_ai is False
    assert record.keywords == ("meeting", "notes")
    assert store.get(path) == record


def test_low_confidence_file_is_unknown(tmp_path: Path) -> None:
    pipeline, _, planner = _pipeline(tmp_path)
    path = _write(tmp_path / "inbox", "data.xyz")

    record = pipeline.process(path)

    assert (record.category, record.sub_category) == ("Unknown", "General")
    assert record.confidence == 0.5
    assert record.suggested_path == planner.root / "Unknown" / "General" / "data.xyz"


def test_medium_confidence_without_ai_is_ready(tmp_path: Path) -> None:
    pipeline, _, _ = _pipeline(tmp_path)
    ready: List[FileRecord] = []
    pipeline.add_ready_listener(ready.append)
    path = _write(tmp_path / "inbox", "bundle.zip")

    record = pipeline.process(path)

    assert record.category == "Archives"
    assert record.pending_ai is False
    assert ready == [record]


def test_ai_refines_medium_confidence_record(tmp_path: Path) -> None:
    transport = StaticTransport(
        '{"category": "Documents", "sub_category": "Backups", "confidence": 0.9, "keywords": ["backup"]}'
    )
    pipeline, store, planner = _pipeline(tmp_path, transport=transport)
    ready: List[FileRecord] = []
    pipeline.add_ready_listener(ready.append)
    path = _write(tmp_path / "inbox", "bundle.zip")

    first = pipeline.process(path)
    assert first.category == "Archives"
    assert first.pending_ai is True
    assert pipeline.wait_for_ai(timeout=5)
    pipeline.shutdown()

    refined = store.get(path)
    assert refined.pending_ai is False
    assert (refined.category, refined.sub_category) == ("Documents", "Backups")
    assert AI_KEYWORD in refined.keywords
    assert refined.suggested_path == planner.root / "Documents" / "Backups" / "bundle.zip"
    assert ready == [refined]
    assert transport.requests[0].file_name == "bundle.zip"


def test_ai_failure_keeps_rule_result(tmp_path: Path) -> None:
    events = EventHub()
    messages: List[str] = []
    events.add_status_observer(messages.append)
    pipeline, store, _ = _pipeline(tmp_path, transport=StaticTransport(AITimeout("slow")), events=events)
    path = _write(tmp_path / "inbox", "bundle.zip")

    pipeline.process(path)
    pipeline.wait_for_ai(timeout=5)
    pipeline.shutdown()

    record = store.get(path)
    assert record.category == "Archives"
    assert record.pending_ai is False
    assert any("AI analysis unavailable for bundle.zip" in message for message in messages)


def test_high_confidence_never_calls_ai(tmp_path: Path) -> None:
    transport = StaticTransport('{"category": "Images", "confidence": 0.99}')
    pipeline, _, _ = _pipeline(tmp_path, transport=transport)
    path = _write(tmp_path / "inbox", "invoice_march.pdf")

    record = pipeline.process(path)
    pipeline.wait_for_ai(timeout=5)
    pipeline.shutdown()

    assert record.category == "Documents"
    assert transport.requests == []


def test_skip_policy_marks_records_skipped(tmp_path: Path) -> None:
    pipeline, store, _ = _pipeline(
        tmp_path, skip_policy=SkipPolicy(excluded_patterns=["*.log"])
    )
    inbox = tmp_path / "inbox"
    hidden = _write(inbox, ".secret.txt")
    partial = _write(inbox, "movie.mp4.crdownload")
    excluded = _write(inbox, "debug.log")

    for path in (hidden, partial, excluded):
        record = pipeline.process(path)
        assert record.status is ProcessingStatus.SKIPPED
        assert record.suggested_path is None
    assert len(store) == 3


def test_processing_twice_is_idempotent(tmp_path: Path) -> None:
    pipeline, store, _ = _pipeline(tmp_path)
    path = _write(tmp_path / "inbox", "meeting_notes.docx")

    first = pipeline.process(path)
    second = pipeline.process(path)

    assert second.status is ProcessingStatus.ANALYZED
    assert second.suggested_path == first.suggested_path
    assert (second.category, second.confidence) == (first.category, first.confidence)
    assert len(store) == 1


def test_in_progress_records_are_left_alone(tmp_path: Path) -> None:
    pipeline, store, _ = _pipeline(tmp_path)
    path = _write(tmp_path / "inbox", "meeting_notes.docx")
    store.upsert(FileRecord.from_path(path).transition(ProcessingStatus.SCANNING))

    record = pipeline.process(path)

    assert record.status is ProcessingStatus.SCANNING


def test_missing_untracked_file_is_ignored(tmp_path: Path) -> None:
    pipeline, store, _ = _pipeline(tmp_path)

    assert pipeline.process(tmp_path / "ghost.txt") is None
    assert len(store) == 0


def test_tracked_file_that_vanishes_is_failed(tmp_path: Path) -> None:
    pipeline, store, _ = _pipeline(tmp_path)
    path = _write(tmp_path / "inbox", "meeting_notes.docx")
    pipeline.process(path)
    path.unlink()

    record = pipeline.process(path)

    assert record.status is ProcessingStatus.FAILED
    assert record.error_message
    assert record.suggested_path is None


def test_scan_directory_skips_nested_organized_root(tmp_path: Path) -> None:
    events = EventHub()
    progress: List[Progress] = []
    events.add_progress_observer(progress.append)
    store = InMemoryRecordStore()
    planner = DestinationPlanner(tmp_path / "Organized")
    pipeline = ClassificationPipeline(store, RuleClassifier(), planner, events=events)
    _write(tmp_path, "meeting_notes.docx")
    _write(tmp_path, "bundle.zip")
    _write(tmp_path / "Organized" / "Documents" / "General", "old.pdf")
    _write(tmp_path / "nested", "song.mp3")

    flat = pipeline.scan_directory(tmp_path)
    assert sorted(record.name for record in flat) == ["bundle.zip", "meeting_notes.docx"]
    assert [update.processed for update in progress] == [1, 2]

    deep = pipeline.scan_directory(tmp_path, recursive=True)
    assert sorted(record.name for record in deep) == ["bundle.zip", "meeting_notes.docx", "song.mp3"]
