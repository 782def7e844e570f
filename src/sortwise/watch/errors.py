"""Watch service errors."""


class WatchError(Exception):
    """A watched folder can no longer be monitored."""
