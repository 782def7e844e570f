"""Tests for discovery, type detection, hashing, and metadata extraction."""

from datetime import datetime, timezone
from pathlib import Path

from PIL import Image

from sortwise.ingestion import DirectoryScanner, HashComputer, MetadataExtractor, TypeDetector


def _touch(path: Path, content: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_directory_scanner_filters_hidden_state_and_excluded(tmp_path: Path) -> None:
    _touch(tmp_path / "a.txt")
    _touch(tmp_path / ".hidden.txt")
    _touch(tmp_path / ".sortwise" / "journal.jsonl")
    _touch(tmp_path / "sub" / "b.txt")
    _touch(tmp_path / "Organized" / "c.txt")

    flat = DirectoryScanner(recursive=False, include_hidden=False, follow_symlinks=False)
    deep = DirectoryScanner(
        recursive=True,
        include_hidden=False,
        follow_symlinks=False,
        exclude=[tmp_path / "Organized"],
    )
    everything = DirectoryScanner(recursive=True, include_hidden=True, follow_symlinks=False)

    assert [path.name for path in flat.scan(tmp_path)] == ["a.txt"]
    assert [path.relative_to(tmp_path).as_posix() for path in deep.scan(tmp_path)] == [
        "a.txt",
        "sub/b.txt",
    ]
    assert ".hidden.txt" in {path.name for path in everything.scan(tmp_path)}
    assert "journal.jsonl" not in {path.name for path in everything.scan(tmp_path)}


def test_directory_scanner_missing_root_yields_nothing(tmp_path: Path) -> None:
    scanner = DirectoryScanner(recursive=True, include_hidden=False, follow_symlinks=False)

    assert list(scanner.scan(tmp_path / "missing")) == []


def test_type_detector_and_hasher(tmp_path: Path) -> None:
    detector = TypeDetector()
    notes = _touch(tmp_path / "notes.md", "hello")
    blob = _touch(tmp_path / "blob.unknownext", "hello")

    assert detector.is_text(notes)
    assert detector.detect(blob) == "application/octet-stream"
    assert HashComputer().compute(notes) == HashComputer(chunk_size=2).compute(blob)
    assert len(HashComputer().compute(notes)) == 64


def test_preview_reads_leading_text_only(tmp_path: Path) -> None:
    extractor = MetadataExtractor()
    notes = _touch(tmp_path / "notes.txt", "abcdefghij")
    image = _touch(tmp_path / "photo.png", "not really a png")

    assert extractor.preview(notes, 5) == "abcde"
    assert extractor.preview(notes, 5, max_size_bytes=3) is None
    assert extractor.preview(image, 5) is None


def test_capture_date_reads_exif(tmp_path: Path) -> None:
    path = tmp_path / "camera.jpg"
    exif = Image.Exif()
    exif[306] = "2021:05:06 07:08:09"
    Image.new("RGB", (4, 4), color="red").save(path, exif=exif)

    captured = MetadataExtractor().capture_date(path)

    assert captured == datetime(2021, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    assert MetadataExtractor().capture_date(_touch(tmp_path / "fake.jpg", "nope")) is None
