"""Tests for text normalization helpers."""

from __future__ import annotations

from artlens.utils.text import (
    contains_phrase,
    extract_years,
    includes_ignore_case,
    is_unknown,
    normalize,
    split_sentences,
    subject_key,
    tokenize,
)


def test_normalize_strips_diacritics_and_punctuation() -> None:
    """It should lower-case, drop accents and collapse punctuation to spaces."""

    assert normalize("  Saint-Rémy-de-Provence!  ") == "saint remy de provence"
    assert normalize("") == ""


def test_tokenize_keeps_tokens_of_four_or_more() -> None:
    """It should drop short tokens."""

    assert tokenize("The Night Watch by Rembrandt") == ["night", "watch", "rembrandt"]


def test_extract_years_in_range_and_deduplicated() -> None:
    """It should find 1000-2099 years once each, in order."""

    assert extract_years("Painted 1889, shown 1889 and 1901; not 999 or 2150.") == ["1889", "1901"]


def test_contains_phrase_is_whole_word() -> None:
    """It should not match inside a longer word."""

    assert contains_phrase("A work by Vincent van Gogh.", "van gogh")
    assert not contains_phrase("Monetary value", "Monet")


def test_includes_ignore_case_ignores_unknown() -> None:
    """It should never match a blank or unknown needle."""

    assert includes_ignore_case("Painting by CLAUDE MONET", "Claude Monet")
    assert not includes_ignore_case("unknown artist", "unknown")
    assert not includes_ignore_case("anything", "")


def test_is_unknown() -> None:
    """It should treat blanks and the sentinel as unknown."""

    assert is_unknown(None)
    assert is_unknown("  Unknown ")
    assert not is_unknown("Water Lilies")


def test_subject_key_is_normalized() -> None:
    """It should build the same key for differently cased input."""

    assert subject_key("The Starry Night", "Vincent van Gogh") == subject_key("the starry  NIGHT", "vincent VAN gogh")


def test_split_sentences() -> None:
    """It should split on terminal punctuation followed by whitespace."""

    assert split_sentences("One. Two! Three?  ") == ["One.", "Two!", "Three?"]
