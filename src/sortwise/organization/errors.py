"""Organization errors."""


class OrganizeError(Exception):
    """Base class for failures while organizing a single file."""


class ConflictUnresolved(OrganizeError):
    """No free destination name could be found for a file."""


class ProtectedPathError(OrganizeError):
    """A move touched an operating-system location that is never modified."""
