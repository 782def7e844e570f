"""Destination planning, organize, and undo."""

from .engine import BatchCounts, OrganizeEngine, ReconcileReport
from .errors import ConflictUnresolved, OrganizeError, ProtectedPathError
from .planner import DestinationPlanner, is_protected, month_folder

__all__ = [
    "BatchCounts",
    "ConflictUnresolved",
    "DestinationPlanner",
    "OrganizeEngine",
    "OrganizeError",
    "ProtectedPathError",
    "ReconcileReport",
    "is_protected",
    "month_folder",
]
