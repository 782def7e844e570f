"""Discovery, hashing, and metadata extraction for tracked files."""

from .detectors import HashComputer, TypeDetector
from .discovery import DirectoryScanner
from .extractors import MetadataExtractor

__all__ = ["DirectoryScanner", "HashComputer", "MetadataExtractor", "TypeDetector"]
