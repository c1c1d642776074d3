"""Evidence fetching, validation and caching."""

from __future__ import annotations

from artlens.evidence.cache import ResultCache
from artlens.evidence.orchestrator import EvidenceOrchestrator, PhaseAReport
from artlens.evidence.validator import is_supported, validate_and_merge

__all__ = [
    "EvidenceOrchestrator",
    "PhaseAReport",
    "ResultCache",
    "is_supported",
    "validate_and_merge",
]
