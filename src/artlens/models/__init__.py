"""Pydantic models used across the project."""

from __future__ import annotations

from artlens.models.attribution import AttributionResult, FactCheck, SubjectAttribution
from artlens.models.evidence import (
    EvidenceBundle,
    EvidenceCoverage,
    EvidenceRecord,
    FactsDraft,
    ProviderOutcome,
    VerificationResult,
)

__all__ = [
    "AttributionResult",
    "EvidenceBundle",
    "EvidenceCoverage",
    "EvidenceRecord",
    "FactCheck",
    "FactsDraft",
    "ProviderOutcome",
    "SubjectAttribution",
    "VerificationResult",
]
