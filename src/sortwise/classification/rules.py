"""Deterministic filename and extension based classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Sequence

from sortwise.config.models import CustomRule

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6

KEYWORD_CONFIDENCE = 0.94
PATTERN_CONFIDENCE = 0.88
CUSTOM_PATTERN_CONFIDENCE = 0.9
CUSTOM_EXTENSION_CONFIDENCE = 0.85
LANGUAGE_CONFIDENCE = 0.75
EXTENSION_CONFIDENCE = 0.7
UNMATCHED_CONFIDENCE = 0.5
NO_EXTENSION_CONFIDENCE = 0.3

OTHERS = "Others"
UNKNOWN = "Unknown"
GENERAL = "General"

EXTENSION_CATEGORIES: dict[str, frozenset[str]] = {
    "Documents": frozenset({"pdf", "doc", "docx", "txt", "rtf", "odt", "pages", "md"}),
    "Spreadsheets": frozenset({"xls", "xlsx", "csv", "ods", "numbers"}),
    "Presentations": frozenset({"ppt", "pptx", "odp", "key"}),
    "Images": frozenset(
        {"jpg", "jpeg", "png", "gif", "bmp", "tiff", "webp", "svg", "ico", "heic", "raw"}
    ),
    "Videos": frozenset({"mp4", "avi", "mkv", "mov", "wmv", "flv", "webm", "m4v", "3gp", "ogv"}),
    "Audio": frozenset({"mp3", "wav", "flac", "aac", "ogg", "wma", "m4a", "opus"}),
    "Archives": frozenset({"zip", "rar", "7z", "tar", "gz", "bz2", "xz", "lz", "lzma"}),
    "Applications": frozenset({"exe", "msi", "dmg", "app", "deb", "rpm", "pkg"}),
    "Code": frozenset(
        {"java", "py", "js", "html", "css", "cpp", "c", "h", "php", "rb", "go", "rs", "kt", "swift", "ts"}
    ),
    "System": frozenset({"dll", "sys", "ini", "cfg", "conf", "log"}),
}

CODE_LANGUAGES: dict[str, str] = {
    "py": "Python",
    "js": "JavaScript",
    "ts": "TypeScript",
    "java": "Java",
    "kt": "Kotlin",
    "swift": "Swift",
    "go": "Go",
    "rs": "Rust",
    "rb": "Ruby",
    "php": "PHP",
    "c": "C",
    "h": "C",
    "cpp": "C++",
    "html": "Web",
    "css": "Web",
}

KNOWN_CATEGORIES: frozenset[str] = frozenset([*EXTENSION_CATEGORIES, OTHERS])

_EXTENSION_LOOKUP: dict[str, str] = {
    extension: category
    for category, extensions in EXTENSION_CATEGORIES.items()
    for extension in extensions
}

_STOP_WORDS = frozenset(
    """
    the and for are but not you all can had her was one our out day get has him his how
    man new now old see two way who boy did its let put say she too use file document
    copy final
    """.split()
)


@dataclass(frozen=True, slots=True)
class RuleMatch:
    """Outcome of a rule classification.

    Attributes:
        category: Top-level category.
        sub_category: Category refinement.
        confidence: Fixed confidence of the tier that matched.
        rule: Name of the rule that produced the match.
    """

    category: str
    sub_category: str
    confidence: float
    rule: str


@dataclass(frozen=True, slots=True)
class PatternRule:
    """Filename rule tried before the extension table."""

    name: str
    pattern: re.Pattern[str]
    category: str
    sub_category: str
    confidence: float
    extensions: Optional[frozenset[str]] = None

    def matches(self, stem: str, extension: str) -> bool:
        if self.extensions is not None and extension not in self.extensions:
            return False
        return self.pattern.search(stem) is not None


def _keywords(*words: str) -> re.Pattern[str]:
    alternatives = "|".join(words)
    return re.compile(rf"(?<![a-z])(?:{alternatives})s?(?![a-z])")


def _keyword_rule(category: str, sub_category: str, *words: str) -> PatternRule:
    return PatternRule(
        name=f"{category.lower()}:{sub_category.lower()}",
        pattern=_keywords(*words),
        category=category,
        sub_category=sub_category,
        confidence=KEYWORD_CONFIDENCE,
        extensions=EXTENSION_CATEGORIES[category],
    )


BUILTIN_RULES: tuple[PatternRule, ...] = (
    _keyword_rule("Documents", "Meeting Notes", r"meeting[ _-]?notes?", "minutes", "agenda"),
    _keyword_rule("Documents", "Resume", "resume", "cv", "curriculum[ _-]?vitae"),
    _keyword_rule("Documents", "Financial", "invoice", "receipt", "bill", "statement"),
    _keyword_rule("Documents", "Manuals", "manual", "guide", "instruction", "handbook"),
    _keyword_rule("Documents", "Reports", "report", "analysis"),
    _keyword_rule("Documents", "Legal", "contract", "agreement", "nda"),
    _keyword_rule("Documents", "Educational", "homework", "assignment", "syllabus"),
    _keyword_rule("Images", "Screenshots", "screenshot", r"screen[ _-]?shot", "capture", "snip"),
    _keyword_rule("Images", "Wallpapers", "wallpaper", "background"),
    _keyword_rule("Images", "Profiles", "profile", "avatar"),
    _keyword_rule("Images", "Icons", "icon", "logo"),
    _keyword_rule("Images", "Memes", "meme"),
    _keyword_rule("Videos", "Educational", "tutorial", "course", "lesson", "lecture"),
    _keyword_rule("Videos", "Movies", "movie", "film"),
    _keyword_rule("Videos", "TV Shows", "episode", "series", r"s\d{2}e\d{2}"),
    _keyword_rule("Videos", "Music Videos", "concert", r"music[ _-]?video"),
    _keyword_rule("Videos", "Clips", "clip", "short"),
    _keyword_rule("Audio", "Podcasts", "podcast", "interview"),
    _keyword_rule("Audio", "Audiobooks", "audiobook", "chapter"),
    _keyword_rule("Audio", "Voice Memos", "voice", "memo", "recording"),
    _keyword_rule("Audio", "Music", "song", "music", "track", "album"),
    PatternRule(
        name="images:camera",
        pattern=re.compile(r"^(?:img|dsc|dscn|pxl|dcim|photo)[_-]?\d+"),
        category="Images",
        sub_category="Photos",
        confidence=PATTERN_CONFIDENCE,
        extensions=EXTENSION_CATEGORIES["Images"],
    ),
    PatternRule(
        name="images:dated",
        pattern=re.compile(r"(?<!\d)(?:19|20)\d{2}[-_.]?(?:0[1-9]|1[0-2])[-_.]?(?:0[1-9]|[12]\d|3[01])"),
        category="Images",
        sub_category="Photos",
        confidence=PATTERN_CONFIDENCE,
        extensions=EXTENSION_CATEGORIES["Images"],
    ),
)


def confidence_band(confidence: float) -> Literal["high", "medium", "low"]:
    """Map a confidence score onto the decision bands used by the pipeline."""
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def category_for_extension(extension: str) -> Optional[str]:
    """Return the table category for ``extension`` (without a dot)."""
    return _EXTENSION_LOOKUP.get(extension.lower().lstrip("."))


def extract_keywords(file_name: str) -> tuple[str, ...]:
    """Return ordered keywords derived from a file name.

    Dates (``2024-03-15`` or ``20240315``) become ``date:YYYY-MM-DD``, ``v1.2``
    style markers become ``version:1.2``, and remaining words longer than two
    characters are kept unless they are common filler words.
    """
    stem = file_name.rsplit(".", 1)[0] if "." in file_name.lstrip(".") else file_name
    lowered = stem.lower()
    keywords: list[str] = []

    for year, month, day in re.findall(
        r"(?<!\d)((?:19|20)\d{2})[-_.]?(0[1-9]|1[0-2])[-_.]?(0[1-9]|[12]\d|3[01])(?!\d)", lowered
    ):
        keywords.append(f"date:{year}-{month}-{day}")
    for version in re.findall(r"(?<![a-z])v(\d+(?:\.\d+)*)", lowered):
        keywords.append(f"version:{version}")
    for word in re.split(r"[^a-z]+", lowered):
        if len(word) > 2 and word not in _STOP_WORDS:
            keywords.append(word)

    return tuple(dict.fromkeys(keywords))


@dataclass(frozen=True, slots=True)
class _CompiledCustomRule:
    rule: CustomRule
    pattern: Optional[re.Pattern[str]]
    extensions: frozenset[str]

    def matches(self, stem: str, extension: str) -> bool:
        if self.extensions and extension not in self.extensions:
            return False
        if self.pattern is not None:
            return self.pattern.search(stem) is not None
        return bool(self.extensions)


class RuleClassifier:
    """Classify files from their names and extensions alone.

    Rules are evaluated in a fixed order and the first match wins: enabled
    custom rules by ascending priority, the built-in keyword and pattern
    rules, then the extension table.
    """

    def __init__(
        self,
        custom_rules: Iterable[CustomRule] = (),
        *,
        builtin_rules: Sequence[PatternRule] = BUILTIN_RULES,
    ) -> None:
        """Compile the rule set.

        Args:
            custom_rules: User-defined rules from configuration.
            builtin_rules: Ordered built-in filename rules.

        Raises:
            ValueError: If two enabled custom rules share a priority and could
                match the same extension, or a rule pattern is invalid.
        """
        enabled = sorted((rule for rule in custom_rules if rule.enabled), key=lambda r: r.priority)
        self._check_ambiguity(enabled)
        self._custom: list[_CompiledCustomRule] = []
        for rule in enabled:
            try:
                pattern = re.compile(rule.pattern, re.IGNORECASE) if rule.pattern else None
            except re.error as exc:
                raise ValueError(f"Rule '{rule.name}' has an invalid pattern: {exc}") from exc
            self._custom.append(
                _CompiledCustomRule(rule=rule, pattern=pattern, extensions=frozenset(rule.extensions))
            )
        self._builtin = tuple(builtin_rules)

    @property
    def categories(self) -> frozenset[str]:
        """Return every category this classifier can emit."""
        return KNOWN_CATEGORIES | {compiled.rule.category for compiled in self._custom}

    def classify(self, file_name: str, extension: str, size_bytes: int) -> RuleMatch:
        """Return the category, sub-category, and confidence for a file.

        Args:
            file_name: File name including extension.
            extension: Extension with or without a leading dot.
            size_bytes: File size; accepted for the contract, not used by the rules.

        Returns:
            RuleMatch: Result of the first matching rule tier.
        """
        del size_bytes
        extension = extension.lower().lstrip(".")
        stem = file_name.lower()
        if extension and stem.endswith(f".{extension}"):
            stem = stem[: -(len(extension) + 1)]

        for compiled in self._custom:
            if compiled.matches(stem, extension):
                confidence = (
                    CUSTOM_PATTERN_CONFIDENCE
                    if compiled.pattern is not None
                    else CUSTOM_EXTENSION_CONFIDENCE
                )
                return RuleMatch(
                    category=compiled.rule.category,
                    sub_category=compiled.rule.sub_category,
                    confidence=confidence,
                    rule=f"custom:{compiled.rule.name}",
                )

        for rule in self._builtin:
            if rule.matches(stem, extension):
                return RuleMatch(rule.category, rule.sub_category, rule.confidence, rule.name)

        if not extension:
            return RuleMatch(OTHERS, GENERAL, NO_EXTENSION_CONFIDENCE, "no-extension")

        category = _EXTENSION_LOOKUP.get(extension)
        if category is None:
            return RuleMatch(OTHERS, GENERAL, UNMATCHED_CONFIDENCE, "unmatched-extension")
        if category == "Code":
            return RuleMatch(category, CODE_LANGUAGES[extension], LANGUAGE_CONFIDENCE, "extension:code")
        return RuleMatch(category, GENERAL, EXTENSION_CONFIDENCE, f"extension:{extension}")

    @staticmethod
    def _check_ambiguity(rules: Sequence[CustomRule]) -> None:
        for index, first in enumerate(rules):
            for second in rules[index + 1 :]:
                if first.priority != second.priority:
                    continue
                first_ext, second_ext = set(first.extensions), set(second.extensions)
                if not first_ext or not second_ext or first_ext & second_ext:
                    raise ValueError(
                        f"Rules '{first.name}' and '{second.name}' share priority "
                        f"{first.priority} and can match the same files; give them distinct priorities."
                    )


__all__ = [
    "BUILTIN_RULES",
    "EXTENSION_CATEGORIES",
    "GENERAL",
    "HIGH_CONFIDENCE",
    "KNOWN_CATEGORIES",
    "MEDIUM_CONFIDENCE",
    "OTHERS",
    "UNKNOWN",
    "PatternRule",
    "RuleClassifier",
    "RuleMatch",
    "category_for_extension",
    "confidence_band",
    "extract_keywords",
]
