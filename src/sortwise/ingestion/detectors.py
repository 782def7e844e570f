"""File type detection and hashing utilities."""

from __future__ import annotations

import hashlib
import mimetypes
from pathlib import Path

_CHUNK_SIZE = 64 * 1024

_TEXT_EXTENSIONS = frozenset(
    {"txt", "md", "csv", "log", "json", "xml", "yaml", "yml", "ini", "cfg", "conf", "html", "css"}
)


class TypeDetector:
    """Guess MIME types from file names."""

    def detect(self, path: Path) -> str:
        """Return the MIME type for ``path``, or ``application/octet-stream``."""
        mime, _ = mimetypes.guess_type(path.name, strict=False)
        if mime:
            return mime
        if path.suffix[1:].lower() in _TEXT_EXTENSIONS:
            return "text/plain"
        return "application/octet-stream"

    def is_text(self, path: Path) -> bool:
        """Return whether the file is expected to hold readable text."""
        mime = self.detect(path)
        return mime.startswith("text/") or mime in {
            "application/json",
            "application/xml",
            "application/x-yaml",
        }


class HashComputer:
    """Compute content digests for duplicate detection."""

    def __init__(self, algorithm: str = "sha256", chunk_size: int = _CHUNK_SIZE) -> None:
        self._algorithm = algorithm
        self._chunk_size = chunk_size

    def compute(self, path: Path) -> str:
        """Return a hex digest of the file contents.

        Raises:
            OSError: If the file cannot be read.
        """
        digest = hashlib.new(self._algorithm)
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(self._chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()


__all__ = ["HashComputer", "TypeDetector"]
