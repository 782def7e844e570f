"""Tests for the deterministic rule classifier."""

import pytest

from sortwise.classification import RuleClassifier
from sortwise.classification.rules import (
    HIGH_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    OTHERS,
    category_for_extension,
    confidence_band,
    extract_keywords,
)
from sortwise.config import CustomRule


@pytest.mark.parametrize(
    ("file_name", "category", "sub_category"),
    [
        ("meeting_notes.docx", "Documents", "Meeting Notes"),
        ("Invoice-March.pdf", "Documents", "Financial"),
        ("Screenshot 2024-01-02.png", "Images", "Screenshots"),
        ("IMG_1234.jpg", "Images", "Photos"),
        ("podcast_episode.mp3", "Audio", "Podcasts"),
    ],
)
def test_builtin_rules_classify_with_high_confidence(
    file_name: str, category: str, sub_category: str
) -> None:
    match = RuleClassifier().classify(file_name, file_name.rsplit(".", 1)[1], 10)

    assert match.category == category
    assert match.sub_category == sub_category
    assert match.confidence >= HIGH_CONFIDENCE


def test_extension_table_is_medium_confidence() -> None:
    match = RuleClassifier().classify("bundle.zip", "zip", 100)

    assert (match.category, match.sub_category) == ("Archives", "General")
    assert confidence_band(match.confidence) == "medium"


def test_code_files_use_language_sub_category() -> None:
    match = RuleClassifier().classify("main.py", ".py", 10)

    assert (match.category, match.sub_category) == ("Code", "Python")
    assert MEDIUM_CONFIDENCE <= match.confidence < HIGH_CONFIDENCE


def test_unknown_extension_and_no_extension_are_low_confidence() -> None:
    classifier = RuleClassifier()

    unmatched = classifier.classify("data.xyz", "xyz", 1)
    bare = classifier.classify("Makefile", "", 1)

    assert unmatched.category == OTHERS
    assert bare.category == OTHERS
    assert confidence_band(unmatched.confidence) == "low"
    assert bare.confidence < unmatched.confidence


def test_custom_rules_run_before_builtin_rules() -> None:
    classifier = RuleClassifier(
        [
            CustomRule(
                name="Work invoices",
                category="Finance",
                sub_category="Invoices",
                extensions=["pdf"],
                pattern=r"inv-\d+",
                priority=5,
            )
        ]
    )

    custom = classifier.classify("INV-2024.pdf", "pdf", 1)
    fallback = classifier.classify("notes.pdf", "pdf", 1)

    assert (custom.category, custom.sub_category) == ("Finance", "Invoices")
    assert custom.rule == "custom:Work invoices"
    assert fallback.category == "Documents"
    assert "Finance" in classifier.categories


def test_disabled_custom_rules_are_ignored() -> None:
    classifier = RuleClassifier(
        [CustomRule(name="Off", category="Finance", extensions=["pdf"], enabled=False)]
    )

    assert classifier.classify("notes.pdf", "pdf", 1).category == "Documents"
    assert "Finance" not in classifier.categories


def test_ambiguous_custom_rules_are_rejected() -> None:
    rules = [
        CustomRule(name="A", category="One", extensions=["pdf"], priority=10),
        CustomRule(name="B", category="Two", extensions=["pdf", "doc"], priority=10),
    ]

    with pytest.raises(ValueError):
        RuleClassifier(rules)


def test_same_priority_with_disjoint_extensions_is_allowed() -> None:
    classifier = RuleClassifier(
        [
            CustomRule(name="A", category="One", extensions=["pdf"], priority=10),
            CustomRule(name="B", category="Two", extensions=["doc"], priority=10),
        ]
    )

    assert classifier.classify("x.doc", "doc", 1).category == "Two"


def test_invalid_custom_pattern_is_rejected() -> None:
    with pytest.raises(ValueError):
        RuleClassifier([CustomRule(name="Bad", category="One", pattern="(")])


def test_extract_keywords_captures_dates_versions_and_words() -> None:
    keywords = extract_keywords("Report_2024-03-15_v1.2_final.pdf")

    assert keywords == ("date:2024-03-15", "version:1.2", "report")


def test_category_for_extension_ignores_case_and_dot() -> None:
    assert category_for_extension(".MP4") == "Videos"
    assert category_for_extension("unknown") is None


def test_confidence_band_boundaries() -> None:
    assert confidence_band(0.8) == "high"
    assert confidence_band(0.6) == "medium"
    assert confidence_band(0.59) == "low"
