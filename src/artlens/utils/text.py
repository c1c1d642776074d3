"""Text normalization used for matching evidence against model output."""

from __future__ import annotations

import re
import unicodedata

UNKNOWN = "unknown"

_NON_WORD_RE = re.compile(r"[\W_]+", re.UNICODE)
_SPACE_RE = re.compile(r"\s+")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_YEAR_RE = re.compile(r"\b(1[0-9]{3}|20[0-9]{2})\b")

MIN_TOKEN_LEN = 4


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(value: str) -> str:
    """Lower-case, drop diacritics and punctuation, collapse whitespace."""

    if not value:
        return ""
    lowered = strip_diacritics(value).lower()
    return _SPACE_RE.sub(" ", _NON_WORD_RE.sub(" ", lowered)).strip()


def tokenize(value: str) -> list[str]:
    """Normalized tokens of at least four characters."""

    return [t for t in normalize(value).split(" ") if len(t) >= MIN_TOKEN_LEN]


def split_sentences(value: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT_RE.split(value or "") if part.strip()]


def extract_years(text: str) -> list[str]:
    """Distinct year-like tokens (1000-2099) in first-seen order."""

    return list(dict.fromkeys(_YEAR_RE.findall(text or "")))


def contains_phrase(haystack: str, needle: str) -> bool:
    """Whole-word containment of ``needle`` in ``haystack`` after normalization."""

    n = normalize(needle)
    if not n:
        return False
    return f" {n} " in f" {normalize(haystack)} "


def is_unknown(value: str | None) -> bool:
    return not value or normalize(value) in ("", UNKNOWN)


def subject_key(title: str, creator: str) -> str:
    """Cache key for an identified subject: normalized ``title|creator``."""

    return f"{normalize(title)}|{normalize(creator)}"


def includes_ignore_case(haystack: str, needle: str) -> bool:
    """Substring containment after normalization; blank needles never match."""

    n = normalize(needle)
    if not n or n == UNKNOWN:
        return False
    return n in normalize(haystack)
