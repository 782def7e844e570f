"""Errors raised at the AI classifier boundary."""

from __future__ import annotations

from enum import Enum


class TransportErrorKind(str, Enum):
    """Failure categories reported by an AI transport."""

    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"


class AIError(Exception):
    """Base class for AI classifier failures."""


class AITransportError(AIError):
    """Base class for failures talking to the external service."""

    kind: TransportErrorKind = TransportErrorKind.UNAVAILABLE


class AIUnavailable(AITransportError):
    """The service could not be reached or rejected the credentials."""

    kind = TransportErrorKind.UNAVAILABLE


class AITimeout(AITransportError):
    """The service did not answer within the configured timeout."""

    kind = TransportErrorKind.TIMEOUT


class AIQuotaExceeded(AITransportError):
    """The service refused the call because of rate limits or quota."""

    kind = TransportErrorKind.QUOTA_EXCEEDED


class MalformedResponse(AIError):
    """A response could not be parsed into a classification."""


__all__ = [
    "AIError",
    "AIQuotaExceeded",
    "AITimeout",
    "AITransportError",
    "AIUnavailable",
    "MalformedResponse",
    "TransportErrorKind",
]
