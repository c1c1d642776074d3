"""Request-level pipeline coordination."""

from __future__ import annotations

from artlens.orchestrator.pipeline import EvidenceOptions, RecognitionPipeline

__all__ = ["EvidenceOptions", "RecognitionPipeline"]
