"""Tests for duplicate detection and cleanup candidates."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from sortwise.cleanup import (
    CleanupCandidate,
    CleanupReason,
    CleanupScanner,
    DuplicateGroup,
    DuplicateScanner,
    SafetyLevel,
)
from sortwise.config.models import CleanupSettings
from sortwise.state import FileRecord, InMemoryRecordStore

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _file(directory: Path, name: str, content: bytes) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return path


def _record(path: Path, *, size: int = 10, age_days: int = 0) -> FileRecord:
    moment = NOW - timedelta(days=age_days)
    return FileRecord(
        path=path,
        name=path.name,
        extension=path.suffix[1:].lower(),
        size_bytes=size,
        created_at=moment,
        modified_at=moment,
    )


def test_duplicates_group_identical_content(tmp_path: Path) -> None:
    first = _file(tmp_path / "a", "photo.jpg", b"same-bytes")
    second = _file(tmp_path / "b", "photo copy.jpg", b"same-bytes")
    other = _file(tmp_path / "c", "other.jpg", b"diff-bytes")
    empty_one = _file(tmp_path, "empty1.txt", b"")
    empty_two = _file(tmp_path, "empty2.txt", b"")

    groups = DuplicateScanner().find_in_paths([first, second, other, empty_one, empty_two])

    assert len(groups) == 1
    group = groups[0]
    assert group.paths == (first, second)
    assert group.size_bytes == len(b"same-bytes")
    assert group.reclaimable_bytes == len(b"same-bytes")
    assert len(group.content_hash) == 64


def test_keeper_policies(tmp_path: Path) -> None:
    older = _file(tmp_path / "x", "report.pdf", b"12345")
    newer = _file(tmp_path / "y", "report.pdf", b"12345")
    records = [
        _record(older, size=5, age_days=30),
        _record(newer, size=5, age_days=1),
    ]

    earliest = DuplicateScanner().find_duplicates(records)[0]
    latest = DuplicateScanner(keeper_policy="latest_modified").find_duplicates(records)[0]

    assert earliest.keeper == older
    assert earliest.redundant == (newer,)
    assert latest.keeper == newer


def test_groups_sorted_by_reclaimable_space(tmp_path: Path) -> None:
    small = [_file(tmp_path / str(index), "s.txt", b"ab") for index in range(3)]
    large = [_file(tmp_path / str(index), "l.txt", b"x" * 100) for index in range(2)]

    groups = DuplicateScanner().find_in_paths([*small, *large])

    assert [group.reclaimable_bytes for group in groups] == [100, 4]


def test_digests_are_cached_in_store(tmp_path: Path) -> None:
    store = InMemoryRecordStore()
    paths = [_file(tmp_path / name, "same.bin", b"payload") for name in ("one", "two")]
    records = [store.upsert(FileRecord.from_path(path)) for path in paths]

    DuplicateScanner(store=store).find_duplicates(records)

    hashes = {store.get(path).content_hash for path in paths}
    assert len(hashes) == 1
    assert None not in hashes


def test_duplicate_group_invariants(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        DuplicateGroup(content_hash="h", size_bytes=1, paths=(tmp_path / "a",), keeper=tmp_path / "a")
    with pytest.raises(ValidationError):
        DuplicateGroup(
            content_hash="h",
            size_bytes=1,
            paths=(tmp_path / "a", tmp_path / "b"),
            keeper=tmp_path / "c",
        )


def test_candidate_safety_is_most_cautious_reason(tmp_path: Path) -> None:
    candidate = CleanupCandidate.from_reasons(
        tmp_path / "setup.exe.bak",
        10,
        (CleanupReason.TEMPORARY_FILE, CleanupReason.BACKUP_FILE),
    )

    assert candidate.safety is SafetyLevel.CAUTION
    with pytest.raises(ValidationError):
        CleanupCandidate(
            path=tmp_path / "x.tmp",
            size_bytes=1,
            reasons=(CleanupReason.BACKUP_FILE,),
            safety=SafetyLevel.SAFE,
        )


def test_cleanup_reasons(tmp_path: Path) -> None:
    scanner = CleanupScanner(CleanupSettings(large_file_mb=1))

    assert scanner.reasons_for(_record(tmp_path / "empty.txt", size=0), NOW) == (CleanupReason.EMPTY_FILE,)
    assert scanner.reasons_for(_record(tmp_path / "download.crdownload"), NOW) == (
        CleanupReason.TEMPORARY_FILE,
    )
    assert scanner.reasons_for(_record(tmp_path / "Thumbs.db"), NOW) == (CleanupReason.TEMPORARY_FILE,)
    assert scanner.reasons_for(_record(tmp_path / "notes.txt.bak"), NOW) == (CleanupReason.BACKUP_FILE,)
    assert scanner.reasons_for(_record(tmp_path / "setup.dmg", age_days=45), NOW) == (
        CleanupReason.OLD_INSTALLER,
    )
    assert scanner.reasons_for(_record(tmp_path / "setup.dmg", age_days=5), NOW) == ()
    assert scanner.reasons_for(
        _record(tmp_path / "movie.mkv", size=2 * 1024 * 1024, age_days=200), NOW
    ) == (CleanupReason.LARGE_UNUSED,)
    assert scanner.reasons_for(_record(tmp_path / "keep.txt"), NOW) == ()


def test_directory_heuristics_are_relative_to_root(tmp_path: Path) -> None:
    scanner = CleanupScanner()
    root = tmp_path / "home"
    stale_download = _record(root / "Downloads" / "old.pdf", age_days=120)
    cached = _record(root / "app" / "cache" / "blob.dat")

    assert scanner.reasons_for(stale_download, NOW, root=root) == (CleanupReason.STALE_LOW_VALUE,)
    assert scanner.reasons_for(cached, NOW, root=root) == (CleanupReason.CACHE_FILE,)
    assert scanner.reasons_for(_record(root / "Downloads" / "new.pdf", age_days=3), NOW, root=root) == ()


def test_find_candidates_orders_safest_and_largest_first(tmp_path: Path) -> None:
    records = [
        _record(tmp_path / "archive.zip.old", size=50),
        _record(tmp_path / "small.tmp", size=1),
        _record(tmp_path / "big.tmp", size=500),
        _record(tmp_path / "keep.txt"),
    ]

    candidates = CleanupScanner().find_candidates(records, NOW)

    assert [candidate.path.name for candidate in candidates] == ["big.tmp", "small.tmp", "archive.zip.old"]
    assert [candidate.safety for candidate in candidates] == [
        SafetyLevel.SAFE,
        SafetyLevel.SAFE,
        SafetyLevel.CAUTION,
    ]
