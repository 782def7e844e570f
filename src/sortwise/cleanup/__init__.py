"""Duplicate detection and cleanup suggestions."""

from .candidates import CleanupScanner
from .duplicates import DuplicateScanner, KeeperPolicy
from .models import CleanupCandidate, CleanupReason, DuplicateGroup, SafetyLevel

__all__ = [
    "CleanupCandidate",
    "CleanupReason",
    "CleanupScanner",
    "DuplicateGroup",
    "DuplicateScanner",
    "KeeperPolicy",
    "SafetyLevel",
]
