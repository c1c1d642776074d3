"""Tests for lenient JSON extraction from model output."""

from __future__ import annotations

import pytest

from artlens.errors import JsonExtractionError
from artlens.utils.json_extract import extract_json_object


def test_extracts_plain_object() -> None:
    """It should decode a bare JSON object."""

    assert extract_json_object('{"title": "Mona Lisa"}') == {"title": "Mona Lisa"}


def test_extracts_from_json_fence() -> None:
    """It should prefer the contents of a ```json fenced block."""

    text = 'Here you go:\n```json\n{"creator": "Leonardo da Vinci"}\n```\nThanks.'
    assert extract_json_object(text) == {"creator": "Leonardo da Vinci"}


def test_extracts_from_untagged_fence() -> None:
    """It should accept a fence without a language tag."""

    text = '```\n{"date": "1503"}\n```'
    assert extract_json_object(text) == {"date": "1503"}


def test_extracts_outermost_braces_from_prose() -> None:
    """It should fall back to the first-to-last brace span."""

    text = 'The painting is {"title": "Guernica", "meta": {"year": 1937}} as far as I can tell.'
    assert extract_json_object(text) == {"title": "Guernica", "meta": {"year": 1937}}


@pytest.mark.parametrize("text", ["", "   ", "no json here at all"])
def test_no_json_found(text: str) -> None:
    """It should report no_json_found when there is nothing brace-delimited."""

    with pytest.raises(JsonExtractionError) as exc:
        extract_json_object(text)
    assert exc.value.reason == "no_json_found"


def test_invalid_json() -> None:
    """It should report invalid_json when a candidate does not decode."""

    with pytest.raises(JsonExtractionError) as exc:
        extract_json_object("{title: 'single quotes'}")
    assert exc.value.reason == "invalid_json"


def test_array_without_object_is_not_json_object() -> None:
    """It should report no_json_found for a bare array of strings."""

    with pytest.raises(JsonExtractionError) as exc:
        extract_json_object('```json\n["a", "b"]\n```')
    assert exc.value.reason == "no_json_found"


def test_object_span_wins_over_array_fence() -> None:
    """It should keep trying candidates until one decodes to an object."""

    assert extract_json_object('```json\n[{"a": 1}]\n```') == {"a": 1}
