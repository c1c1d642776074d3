"""Lenient JSON object extraction from model output.

Models are asked for raw JSON but regularly wrap it in markdown fences or surround it with
prose. The strategies below go from strict to loose:

    1. a fenced block (```json ... ``` or ``` ... ```);
    2. the whole text, when it looks like a JSON object;
    3. the outermost ``{ ... }`` span (first ``{`` to last ``}``).

Failures are explicit: :class:`~artlens.errors.JsonExtractionError` carries either
``no_json_found`` (nothing brace-delimited in the text) or ``invalid_json`` (a candidate was
found but did not decode to an object).
"""

from __future__ import annotations

import json
import re
from typing import Any

from artlens.errors import JsonExtractionError
from artlens.logging import get_logger

logger = get_logger(__name__)

_FENCE_JSON_RE = re.compile(r"```json\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_FENCE_ANY_RE = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)\n?```", re.DOTALL)


def _candidates(text: str) -> list[str]:
    out: list[str] = []

    m = _FENCE_JSON_RE.search(text) or _FENCE_ANY_RE.search(text)
    if m:
        inner = m.group(1).strip()
        if inner:
            out.append(inner)

    if text.startswith("{") and text.endswith("}"):
        out.append(text)

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        out.append(text[start : end + 1])

    # Keep order, drop repeats
    return list(dict.fromkeys(out))


def extract_json_object(text: str) -> dict[str, Any]:
    """Extract one JSON object from free text.

    Args:
        text: Raw model output.

    Returns:
        The decoded object.

    Raises:
        JsonExtractionError: With reason ``no_json_found`` or ``invalid_json``.
    """

    cleaned = (text or "").strip()
    if not cleaned:
        raise JsonExtractionError("no_json_found", "empty text")

    candidates = _candidates(cleaned)
    if not any("{" in c for c in candidates):
        raise JsonExtractionError("no_json_found", "no brace-delimited span")

    last_error = ""
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = str(e)
            logger.debug("extract_json_object: candidate failed to decode: %s", e)
            continue
        if isinstance(data, dict):
            return data
        last_error = f"decoded {type(data).__name__}, expected object"

    raise JsonExtractionError("invalid_json", last_error)
