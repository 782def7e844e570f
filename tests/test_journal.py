"""Tests for the undo journal and its stores."""

from pathlib import Path

import pytest

from sortwise.state import (
    JournalError,
    JournalOutcome,
    JsonlJournalStore,
    MemoryJournalStore,
    UndoEntry,
    UndoJournal,
    journal_path_for,
)


def test_journal_path_for_nests_under_state_dir(tmp_path: Path) -> None:
    assert journal_path_for(tmp_path) == tmp_path / ".sortwise" / "journal.jsonl"


def test_latest_mark_decides_entry_state() -> None:
    journal = UndoJournal(MemoryJournalStore())
    first = journal.record_intent(Path("/in/a.txt"), Path("/out/a.txt"), 3)
    second = journal.record_intent(Path("/in/b.txt"), Path("/out/b.txt"), 4)
    third = journal.record_intent(Path("/in/c.txt"), Path("/out/c.txt"), 5)

    journal.mark(first, JournalOutcome.COMMITTED)
    journal.mark(second, JournalOutcome.COMMITTED)
    journal.mark(second.entry_id, JournalOutcome.REVERTED)

    assert [entry.entry_id for entry in journal.entries()] == [
        first.entry_id,
        second.entry_id,
        third.entry_id,
    ]
    assert journal.undoable() == [first]
    assert journal.unresolved() == [third]
    assert journal.outcome_of(second.entry_id) is JournalOutcome.REVERTED
    assert journal.outcome_of(third.entry_id) is None


def test_explicit_unresolved_mark_keeps_entry_unresolved() -> None:
    journal = UndoJournal(MemoryJournalStore())
    entry = journal.record_intent(Path("/in/a.txt"), Path("/out/a.txt"), 1)
    journal.mark(entry, JournalOutcome.UNRESOLVED, "source and destination both missing")

    assert journal.unresolved() == [entry]
    assert journal.undoable() == []


def test_jsonl_store_persists_items(tmp_path: Path) -> None:
    path = journal_path_for(tmp_path)
    journal = UndoJournal(JsonlJournalStore(path))
    entry = journal.record_intent(tmp_path / "a.txt", tmp_path / "Documents" / "a.txt", 12)
    journal.mark(entry, JournalOutcome.COMMITTED)

    reopened = UndoJournal(JsonlJournalStore(path))

    entries = reopened.entries()
    assert len(entries) == 1
    assert isinstance(entries[0], UndoEntry)
    assert entries[0].entry_id == entry.entry_id
    assert entries[0].new_path == tmp_path / "Documents" / "a.txt"
    assert entries[0].size_bytes == 12
    assert reopened.undoable()[0].entry_id == entry.entry_id
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2


def test_jsonl_store_ignores_truncated_last_line(tmp_path: Path) -> None:
    path = journal_path_for(tmp_path)
    store = JsonlJournalStore(path)
    journal = UndoJournal(store)
    entry = journal.record_intent(tmp_path / "a.txt", tmp_path / "b.txt", 1)

    with path.open("a", encoding="utf-8") as handle:
        handle.write('{"kind": "mark", "entry_id": "')

    assert [item.entry_id for item in journal.entries()] == [entry.entry_id]
    assert journal.unresolved()[0].entry_id == entry.entry_id


def test_jsonl_store_rejects_corruption_before_last_line(tmp_path: Path) -> None:
    path = journal_path_for(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("not json\n{}\n", encoding="utf-8")

    with pytest.raises(JournalError):
        JsonlJournalStore(path).read_all()


def test_missing_journal_reads_empty(tmp_path: Path) -> None:
    store = JsonlJournalStore(tmp_path / "nothing" / "journal.jsonl")

    assert store.read_all() == []
    assert UndoJournal(store).unresolved() == []


def test_append_after_interrupted_write_drops_partial_line(tmp_path: Path) -> None:
    path = journal_path_for(tmp_path)
    journal = UndoJournal(JsonlJournalStore(path))
    first = journal.record_intent(tmp_path / "a.txt", tmp_path / "Documents" / "a.txt", 1)

    with path.open("a", encoding="utf-8") as handle:
        handle.write('{"kind": "entry", "entry_id": "abc", "orig')

    second = journal.record_intent(tmp_path / "b.txt", tmp_path / "Documents" / "b.txt", 2)
    journal.mark(second, JournalOutcome.COMMITTED)

    reopened = UndoJournal(JsonlJournalStore(path))
    assert [entry.entry_id for entry in reopened.entries()] == [first.entry_id, second.entry_id]
    assert reopened.undoable()[0].entry_id == second.entry_id
    assert "abc" not in path.read_text(encoding="utf-8")


def test_append_keeps_complete_line_missing_newline(tmp_path: Path) -> None:
    path = journal_path_for(tmp_path)
    store = JsonlJournalStore(path)
    journal = UndoJournal(store)
    entry = journal.record_intent(tmp_path / "a.txt", tmp_path / "b.txt", 1)
    path.write_text(path.read_text(encoding="utf-8").rstrip("\n"), encoding="utf-8")

    journal.mark(entry, JournalOutcome.COMMITTED)

    assert journal.undoable()[0].entry_id == entry.entry_id
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2
