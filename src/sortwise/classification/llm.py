"""DSPy-backed transport for the AI classifier."""

from __future__ import annotations

import json
import logging
from typing import Iterable

try:  # pragma: no cover - optional dependency
    import dspy  # type: ignore
except ImportError:  # pragma: no cover - executed when DSPy absent
    dspy = None  # type: ignore[assignment]

from sortwise.config.models import AISettings

from .ai import AIRequest
from .errors import AIQuotaExceeded, AITimeout, AITransportError, AIUnavailable
from .rules import KNOWN_CATEGORIES

LOGGER = logging.getLogger(__name__)

_AUTH_MARKERS = ("authentication", "permissiondenied", "invalid api key", "401")
_QUOTA_MARKERS = ("ratelimit", "rate limit", "quota", "429")


def translate_error(exc: BaseException) -> AITransportError:
    """Map an exception raised by DSPy or its provider client onto a transport error."""
    if isinstance(exc, AITransportError):
        return exc
    signature = f"{type(exc).__name__} {exc}".lower()
    if isinstance(exc, TimeoutError) or "timeout" in signature:
        return AITimeout(str(exc) or "request timed out")
    if any(marker in signature for marker in _QUOTA_MARKERS):
        return AIQuotaExceeded(str(exc) or "rate limit or quota exceeded")
    return AIUnavailable(str(exc) or type(exc).__name__)


def _is_auth_error(exc: BaseException) -> bool:
    signature = f"{type(exc).__name__} {exc}".lower()
    return any(marker in signature for marker in _AUTH_MARKERS)


class DSPyTransport:
    """Classify files by running a DSPy ``Predict`` program against the configured LM."""

    def __init__(self, settings: AISettings, *, categories: Iterable[str] = KNOWN_CATEGORIES) -> None:
        """Configure the language model and program.

        Args:
            settings: AI settings naming the provider, model, and credentials.
            categories: Categories the model is asked to choose from.

        Raises:
            RuntimeError: If DSPy is not installed or the LM cannot be configured.
        """
        if dspy is None:
            raise RuntimeError(
                "AI analysis requires DSPy. Install it with `pip install sortwise[llm]` "
                "or set ai.enabled to false."
            )
        self._settings = settings
        self._categories = sorted(categories)
        self._lm = self._build_language_model()
        self._program = self._build_program()

    def complete(self, request: AIRequest) -> str:
        """Run the program and return its fields as a JSON document.

        Raises:
            AIUnavailable: If the provider cannot be reached.
            AITimeout: If the provider does not answer in time.
            AIQuotaExceeded: If the provider reports rate limiting.
        """
        try:
            with dspy.context(lm=self._lm):
                prediction = self._program(
                    file_name=request.file_name,
                    extension=request.extension or "(none)",
                    size_bytes=request.size_bytes,
                    name_keywords=list(request.keywords),
                    excerpt=request.excerpt or "",
                    allowed_categories=self._categories,
                )
        except Exception as exc:  # pragma: no cover - provider/runtime errors
            raise translate_error(exc) from exc

        payload = {
            "category": getattr(prediction, "category", None),
            "sub_category": getattr(prediction, "sub_category", None),
            "confidence": getattr(prediction, "confidence", None),
            "keywords": getattr(prediction, "keywords", None) or [],
            "description": getattr(prediction, "description", None),
        }
        return json.dumps(payload, default=str)

    def check_credentials(self) -> bool:
        """Send a trivial prompt; authentication failures return ``False``.

        Raises:
            AITransportError: For failures other than rejected credentials.
        """
        settings = self._settings
        if settings.provider != "local" and settings.api_base_url is None and not settings.api_key:
            return False
        try:
            outputs = self._lm("Hello. Reply with the single word OK.")
        except Exception as exc:  # pragma: no cover - provider/runtime errors
            if _is_auth_error(exc):
                LOGGER.debug("Credential check rejected: %s", exc)
                return False
            raise translate_error(exc) from exc
        return bool(outputs)

    def _build_language_model(self):
        settings = self._settings
        model = settings.model
        if "/" not in model and settings.provider and settings.provider != "local":
            model = f"{settings.provider}/{model}"

        lm_kwargs: dict[str, object] = {
            "model": model,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "timeout": settings.request_timeout_seconds,
            "num_retries": 0,
        }
        if settings.api_base_url:
            lm_kwargs["api_base"] = settings.api_base_url
        if settings.api_key is not None:
            lm_kwargs["api_key"] = settings.api_key

        try:
            return dspy.LM(**lm_kwargs)
        except Exception as exc:  # pragma: no cover - DSPy configuration errors
            raise RuntimeError(
                "Unable to configure the DSPy language model. Verify the ai.* settings."
            ) from exc

    @staticmethod
    def _build_program():
        class FileClassificationSignature(dspy.Signature):  # type: ignore[misc]
            """Classify a file into one of the allowed categories from its name and content."""

            file_name: str = dspy.InputField()
            extension: str = dspy.InputField()
            size_bytes: int = dspy.InputField()
            name_keywords: list[str] = dspy.InputField()
            excerpt: str = dspy.InputField(desc="Leading text of the file; may be empty.")
            allowed_categories: list[str] = dspy.InputField()
            category: str = dspy.OutputField(desc="Exactly one of allowed_categories.")
            sub_category: str = dspy.OutputField(desc="Short refinement such as Reports or Screenshots.")
            confidence: float = dspy.OutputField(desc="Certainty between 0.0 and 1.0.")
            keywords: list[str] = dspy.OutputField(desc="Three to five descriptive keywords.")
            description: str = dspy.OutputField(desc="One sentence describing the file.")

        return dspy.Predict(FileClassificationSignature)


__all__ = ["DSPyTransport", "translate_error"]
