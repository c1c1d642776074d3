"""Recognition passes against the identification model."""

from __future__ import annotations

from artlens.recognition.facts_draft import FactsDraftGenerator
from artlens.recognition.runner import RecognitionOutcome, RecognitionPassRunner, normalize_media_type

__all__ = ["FactsDraftGenerator", "RecognitionOutcome", "RecognitionPassRunner", "normalize_media_type"]
