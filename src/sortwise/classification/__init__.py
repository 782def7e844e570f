"""Rule-based and AI-assisted file classification."""

from .ai import (
    AI_KEYWORD,
    AIClassification,
    AIClassifier,
    AIRequest,
    AITransport,
    BatchOutcome,
    ParseFailure,
    RawResponse,
    TransportFailure,
    parse_response,
)
from .errors import (
    AIError,
    AIQuotaExceeded,
    AITimeout,
    AITransportError,
    AIUnavailable,
    MalformedResponse,
    TransportErrorKind,
)
from .pipeline import ClassificationPipeline, SkipPolicy
from .rules import (
    GENERAL,
    HIGH_CONFIDENCE,
    KNOWN_CATEGORIES,
    MEDIUM_CONFIDENCE,
    OTHERS,
    UNKNOWN,
    RuleClassifier,
    RuleMatch,
    confidence_band,
    extract_keywords,
)

__all__ = [
    "AI_KEYWORD",
    "AIClassification",
    "AIClassifier",
    "AIError",
    "AIQuotaExceeded",
    "AIRequest",
    "AITimeout",
    "AITransport",
    "AITransportError",
    "AIUnavailable",
    "BatchOutcome",
    "ClassificationPipeline",
    "GENERAL",
    "HIGH_CONFIDENCE",
    "KNOWN_CATEGORIES",
    "MEDIUM_CONFIDENCE",
    "MalformedResponse",
    "OTHERS",
    "ParseFailure",
    "RawResponse",
    "RuleClassifier",
    "RuleMatch",
    "SkipPolicy",
    "TransportErrorKind",
    "TransportFailure",
    "UNKNOWN",
    "confidence_band",
    "extract_keywords",
    "parse_response",
]
