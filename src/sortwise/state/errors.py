"""State management errors."""


class StateError(Exception):
    """Base exception for tracked-record and journal operations."""


class InvalidTransitionError(StateError):
    """Raised when a record is asked to move between incompatible statuses."""


class JournalError(StateError):
    """Raised when the undo journal cannot be read or written."""
