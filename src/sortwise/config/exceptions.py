"""Exceptions raised while loading or validating Sortwise configuration."""


class ConfigError(Exception):
    """Raised when configuration data is unreadable, malformed, or invalid."""
