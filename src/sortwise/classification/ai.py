"""Adapter between tracked records and an external AI classification service.

The adapter never raises for expected failures. Transport problems come back
as :class:`TransportFailure`, unparseable answers as :class:`ParseFailure`,
and :meth:`AIClassifier.apply` reports success with a boolean.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from sortwise.ingestion.extractors import MetadataExtractor
from sortwise.state.models import FileRecord

from .errors import AITransportError, MalformedResponse, TransportErrorKind
from .rules import GENERAL, KNOWN_CATEGORIES

LOGGER = logging.getLogger(__name__)

AI_KEYWORD = "ai-analyzed"
TOKENS_PER_FILE = 300
COST_PER_1K_TOKENS = 0.002
MAX_AI_KEYWORDS = 10


class AIRequest(BaseModel):
    """Payload sent to the external classifier.

    Attributes:
        file_name: Name of the file.
        extension: Extension without the leading dot.
        size_bytes: File size.
        keywords: Keywords already extracted from the name.
        excerpt: Leading text of the file when it is text-like.
    """

    model_config = ConfigDict(frozen=True)

    file_name: str
    extension: str
    size_bytes: int
    keywords: Tuple[str, ...] = ()
    excerpt: Optional[str] = None

    def to_prompt(self, categories: Iterable[str]) -> str:
        """Render the request as a plain-text prompt asking for a JSON answer."""
        lines = [
            "Classify the following file and answer with a single JSON object with the keys",
            '"category", "sub_category", "confidence" (0.0-1.0), "keywords" (list of strings)',
            'and "description".',
            f"Allowed categories: {', '.join(sorted(categories))}.",
            "",
            f"File name: {self.file_name}",
            f"Extension: {self.extension or '(none)'}",
            f"Size: {self.size_bytes} bytes",
        ]
        if self.keywords:
            lines.append(f"Name keywords: {', '.join(self.keywords)}")
        if self.excerpt:
            lines.extend(["Content excerpt:", self.excerpt])
        return "\n".join(lines)


class AITransport(Protocol):
    """Black-box client for the external service.

    Implementations raise :class:`~sortwise.classification.errors.AIUnavailable`,
    :class:`~sortwise.classification.errors.AITimeout`, or
    :class:`~sortwise.classification.errors.AIQuotaExceeded`.
    """

    def complete(self, request: AIRequest) -> str: ...

    def check_credentials(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class RawResponse:
    """Unparsed text returned by the transport."""

    text: str


@dataclass(frozen=True, slots=True)
class TransportFailure:
    """The transport could not produce a response."""

    kind: TransportErrorKind
    message: str


AnalyzeResult = Union[RawResponse, TransportFailure]


class AIClassification(BaseModel):
    """Well-formed classification parsed from a response."""

    model_config = ConfigDict(frozen=True)

    category: str
    sub_category: str = GENERAL
    confidence: float = Field(ge=0.0, le=1.0)
    keywords: Tuple[str, ...] = ()
    description: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """A response that could not be turned into a classification."""

    message: str


ParseResult = Union[AIClassification, ParseFailure]


@dataclass(slots=True)
class BatchOutcome:
    """Per-record result of :meth:`AIClassifier.analyze_batch`."""

    path: Path
    success: bool
    record: FileRecord
    error: Optional[str] = None


def parse_response(text: str, categories: Iterable[str] = KNOWN_CATEGORIES) -> ParseResult:
    """Parse a raw response into a classification.

    The JSON object is taken from the first ``{`` to the last ``}`` so answers
    wrapped in prose or code fences still parse.

    Args:
        text: Raw response text.
        categories: Category names the response may use (matched case-insensitively).

    Returns:
        ParseResult: The classification or a parse failure.
    """
    try:
        return _coerce_payload(_extract_object(text), categories)
    except MalformedResponse as exc:
        return ParseFailure(str(exc))


def _extract_object(text: str) -> Dict[str, Any]:
    if not text or not text.strip():
        raise MalformedResponse("empty response")
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise MalformedResponse("response does not contain a JSON object")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise MalformedResponse("response JSON is not an object")
    return payload


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) not in (None, ""):
            return payload[key]
    return None


def _coerce_payload(payload: Dict[str, Any], categories: Iterable[str]) -> AIClassification:
    raw_category = _first(payload, "category")
    if not isinstance(raw_category, str) or not raw_category.strip():
        raise MalformedResponse("missing category")
    canonical = {name.lower(): name for name in categories}
    category = canonical.get(raw_category.strip().lower())
    if category is None:
        raise MalformedResponse(f"unknown category {raw_category!r}")

    raw_confidence = _first(payload, "confidence")
    try:
        confidence = float(raw_confidence)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(f"invalid confidence {raw_confidence!r}") from exc
    if confidence != confidence:  # NaN
        raise MalformedResponse("invalid confidence nan")
    confidence = min(1.0, max(0.0, confidence))

    sub_category = _first(payload, "sub_category", "subcategory", "subCategory")
    if not isinstance(sub_category, str) or not sub_category.strip():
        sub_category = GENERAL

    raw_keywords = _first(payload, "keywords", "tags") or []
    if isinstance(raw_keywords, str):
        raw_keywords = [part for part in raw_keywords.split(",")]
    if not isinstance(raw_keywords, list):
        raise MalformedResponse("keywords must be a list")
    keywords = tuple(
        dict.fromkeys(
            item.strip().lower() for item in raw_keywords if isinstance(item, str) and item.strip()
        )
    )[:MAX_AI_KEYWORDS]

    description = _first(payload, "description", "reasoning")
    if not isinstance(description, str) or not description.strip():
        description = None

    return AIClassification(
        category=category,
        sub_category=sub_category.strip(),
        confidence=confidence,
        keywords=keywords,
        description=description.strip() if description else None,
    )


@dataclass(slots=True)
class _PathLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class AIClassifier:
    """Serialize, admit, and interpret calls to an :class:`AITransport`."""

    def __init__(
        self,
        transport: AITransport,
        *,
        confidence_threshold: float = 0.7,
        max_concurrency: int = 1,
        inter_call_delay: float = 0.1,
        categories: Iterable[str] = KNOWN_CATEGORIES,
        excerpt_chars: int = 2_000,
        max_excerpt_bytes: Optional[int] = None,
        extractor: Optional[MetadataExtractor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Create the adapter.

        Args:
            transport: Client used to reach the service.
            confidence_threshold: Minimum AI confidence for a response to be merged.
            max_concurrency: Number of transport calls admitted at once.
            inter_call_delay: Pause between calls in batch mode.
            categories: Categories a response may use.
            excerpt_chars: Characters of file text sent with a request.
            max_excerpt_bytes: Files larger than this are sent without an excerpt.
            extractor: Metadata extractor used for excerpts.
            sleep: Sleep function, replaceable in tests.
        """
        self._transport = transport
        self._threshold = confidence_threshold
        self._admission = threading.BoundedSemaphore(max(1, max_concurrency))
        self._delay = max(0.0, inter_call_delay)
        self._categories = frozenset(categories)
        self._excerpt_chars = excerpt_chars
        self._max_excerpt_bytes = max_excerpt_bytes
        self._extractor = extractor or MetadataExtractor()
        self._sleep = sleep
        self._credentials_valid: Optional[bool] = None
        self._credentials_lock = threading.Lock()
        self._path_locks: Dict[Path, _PathLock] = {}
        self._path_locks_guard = threading.Lock()

    @property
    def credentials_valid(self) -> Optional[bool]:
        """Return the cached credential check, or ``None`` when not yet checked."""
        return self._credentials_valid

    @property
    def categories(self) -> frozenset[str]:
        """Return the categories a response may use."""
        return self._categories

    def validate_credentials(self) -> bool:
        """Check credentials once and cache a negative answer.

        Transport errors during the check are reported as ``False`` but not
        cached, so a later call retries.
        """
        with self._credentials_lock:
            if self._credentials_valid is not None:
                return self._credentials_valid
            try:
                valid = bool(self._transport.check_credentials())
            except AITransportError as exc:
                LOGGER.warning("AI credential check failed: %s", exc)
                return False
            self._credentials_valid = valid
            if not valid:
                LOGGER.warning("AI credentials rejected; AI analysis disabled until revalidated.")
            return valid

    def revalidate(self) -> bool:
        """Forget the cached credential result and check again."""
        with self._credentials_lock:
            self._credentials_valid = None
        return self.validate_credentials()

    def build_request(self, record: FileRecord) -> AIRequest:
        """Return the request payload describing ``record``."""
        excerpt = self._extractor.preview(
            record.path, self._excerpt_chars, max_size_bytes=self._max_excerpt_bytes
        )
        return AIRequest(
            file_name=record.name,
            extension=record.extension,
            size_bytes=record.size_bytes,
            keywords=tuple(keyword for keyword in record.keywords if keyword != AI_KEYWORD),
            excerpt=excerpt,
        )

    def analyze(self, record: FileRecord) -> AnalyzeResult:
        """Ask the service to classify ``record``.

        Calls for the same path run one at a time; across paths, at most
        ``max_concurrency`` calls are in flight.
        """
        if not self.validate_credentials():
            return TransportFailure(
                TransportErrorKind.UNAVAILABLE,
                "AI credentials are invalid; revalidate to re-enable AI analysis.",
            )

        request = self.build_request(record)
        with self._serialized(record.path), self._admission:
            try:
                text = self._transport.complete(request)
            except AITransportError as exc:
                LOGGER.warning("AI analysis of %s failed (%s): %s", record.name, exc.kind.value, exc)
                return TransportFailure(exc.kind, str(exc) or exc.__class__.__name__)
        return RawResponse(text or "")

    def apply(
        self, record: FileRecord, raw: Union[AnalyzeResult, str]
    ) -> Tuple[bool, FileRecord]:
        """Merge a response into ``record`` when it is well-formed.

        Args:
            record: Record the response was produced for.
            raw: Transport result or raw response text.

        Returns:
            Tuple[bool, FileRecord]: Whether the response was merged, and the
            updated record (the original record when it was not).
        """
        if isinstance(raw, TransportFailure):
            return False, record
        text = raw.text if isinstance(raw, RawResponse) else raw
        parsed = parse_response(text, self._categories)
        if isinstance(parsed, ParseFailure):
            LOGGER.info("Ignoring malformed AI response for %s: %s", record.name, parsed.message)
            return False, record
        if parsed.confidence < self._threshold:
            LOGGER.info(
                "Ignoring AI response for %s: confidence %.2f below threshold %.2f",
                record.name,
                parsed.confidence,
                self._threshold,
            )
            return False, record

        keywords = tuple(dict.fromkeys([*record.keywords, *parsed.keywords, AI_KEYWORD]))
        updated = record.with_changes(
            category=parsed.category,
            sub_category=parsed.sub_category,
            confidence=parsed.confidence,
            keywords=keywords,
            description=parsed.description or record.description,
        )
        return True, updated

    def analyze_batch(self, records: Iterable[FileRecord]) -> Dict[Path, BatchOutcome]:
        """Analyze records one after another with a fixed delay between calls.

        Failures are recorded per record and never stop the batch.
        """
        outcomes: Dict[Path, BatchOutcome] = {}
        items: List[FileRecord] = list(records)
        if not items:
            return outcomes

        if not self.validate_credentials():
            for record in items:
                outcomes[record.path] = BatchOutcome(
                    record.path, False, record, "AI credentials are invalid"
                )
            return outcomes

        for index, record in enumerate(items):
            if index:
                self._sleep(self._delay)
            result = self.analyze(record)
            if isinstance(result, TransportFailure):
                outcomes[record.path] = BatchOutcome(
                    record.path, False, record, f"{result.kind.value}: {result.message}"
                )
                continue
            applied, updated = self.apply(record, result)
            outcomes[record.path] = BatchOutcome(
                record.path,
                applied,
                updated,
                None if applied else "response was malformed or below the confidence threshold",
            )
        return outcomes

    @staticmethod
    def estimate_cost(file_count: int) -> float:
        """Return the approximate API cost in dollars for analyzing ``file_count`` files."""
        return file_count * TOKENS_PER_FILE / 1000 * COST_PER_1K_TOKENS

    @contextmanager
    def _serialized(self, path: Path) -> Iterator[None]:
        with self._path_locks_guard:
            entry = self._path_locks.setdefault(path, _PathLock())
            entry.users += 1
        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._path_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    self._path_locks.pop(path, None)


__all__ = [
    "AI_KEYWORD",
    "AIClassification",
    "AIClassifier",
    "AIRequest",
    "AITransport",
    "AnalyzeResult",
    "BatchOutcome",
    "ParseFailure",
    "ParseResult",
    "RawResponse",
    "TransportFailure",
    "parse_response",
]
