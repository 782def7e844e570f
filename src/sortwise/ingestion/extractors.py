"""Content and metadata extraction helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .detectors import TypeDetector

LOGGER = logging.getLogger(__name__)

# EXIF tags holding the capture time, in order of preference.
_EXIF_DATETIME_ORIGINAL = 36867
_EXIF_DATETIME_DIGITIZED = 36868
_EXIF_DATETIME = 306
_EXIF_IFD = 0x8769


class MetadataExtractor:
    """Read text excerpts and capture dates used by classification and organization."""

    def __init__(self, detector: Optional[TypeDetector] = None) -> None:
        self._detector = detector or TypeDetector()

    def preview(self, path: Path, limit: int, max_size_bytes: Optional[int] = None) -> Optional[str]:
        """Return the leading text of a text-like file.

        Args:
            path: File to read.
            limit: Maximum number of characters to return.
            max_size_bytes: Files larger than this are not read.

        Returns:
            Optional[str]: Stripped excerpt, or ``None`` for binary, oversized,
            empty, or unreadable files.
        """
        if limit <= 0 or not self._detector.is_text(path):
            return None
        try:
            if max_size_bytes is not None and path.stat().st_size > max_size_bytes:
                return None
            with path.open("r", encoding="utf-8", errors="replace") as handle:
                snippet = handle.read(limit).strip()
        except OSError as exc:
            LOGGER.debug("Unable to read excerpt from %s: %s", path, exc)
            return None
        return snippet or None

    def capture_date(self, path: Path) -> Optional[datetime]:
        """Return the EXIF capture time of an image, if it has one."""
        if not self._detector.detect(path).startswith("image/"):
            return None
        try:
            with Image.open(path) as image:
                exif = image.getexif()
                raw = (
                    exif.get_ifd(_EXIF_IFD).get(_EXIF_DATETIME_ORIGINAL)
                    or exif.get_ifd(_EXIF_IFD).get(_EXIF_DATETIME_DIGITIZED)
                    or exif.get(_EXIF_DATETIME)
                )
        except (OSError, UnidentifiedImageError, SyntaxError, ValueError) as exc:
            LOGGER.debug("No EXIF data for %s: %s", path, exc)
            return None
        if not raw:
            return None
        try:
            return datetime.strptime(str(raw).strip(), "%Y:%m:%d %H:%M:%S").replace(
                tzinfo=timezone.utc
            )
        except ValueError:
            return None


__all__ = ["MetadataExtractor"]
