"""Evidence models.

Records come from knowledge providers, are grouped into an :class:`EvidenceBundle` by the
orchestrator, and are consumed by the validator to produce a :class:`VerificationResult`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from artlens.models.attribution import VerificationStatus

EvidenceField = Literal["title", "creator", "date", "location", "style", "summary"]
EvidenceConfidence = Literal["high", "medium", "low"]
ProviderTier = Literal["primary", "secondary"]

COVERAGE_FIELDS: tuple[str, ...] = ("title", "creator", "date", "location", "style")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvidenceRecord(BaseModel):
    """One field-level claim from one provider."""

    model_config = {"frozen": True}

    field: EvidenceField
    value: str
    source_name: str
    source_url: str
    confidence: EvidenceConfidence


class ProviderOutcome(BaseModel):
    """How a single provider call went."""

    name: str
    url: str
    tier: ProviderTier
    latency_ms: int = Field(ge=0)
    ok: bool
    record_count: int = Field(ge=0)


class EvidenceCoverage(BaseModel):
    """Which attribution fields have at least one record."""

    title: bool = False
    creator: bool = False
    date: bool = False
    location: bool = False
    style: bool = False

    @property
    def score(self) -> int:
        return sum(1 for name in COVERAGE_FIELDS if getattr(self, name))

    @classmethod
    def from_records(cls, records: list[EvidenceRecord]) -> "EvidenceCoverage":
        present = {r.field for r in records}
        return cls(**{name: name in present for name in COVERAGE_FIELDS})


class EvidenceBundle(BaseModel):
    """Orchestrator output."""

    records: list[EvidenceRecord] = Field(default_factory=list)
    sources: list[ProviderOutcome] = Field(default_factory=list)
    coverage: EvidenceCoverage = Field(default_factory=EvidenceCoverage)
    coverage_score: int = Field(default=0, ge=0, le=5)
    primary_coverage_score: int = Field(default=0, ge=0, le=5)
    timed_out: bool = False
    latency_ms: int = Field(default=0, ge=0)
    fetched_at: datetime = Field(default_factory=_utcnow)


class FactsDraft(BaseModel):
    """Model-proposed enrichment. Untrusted until validated."""

    facts: list[str] = Field(default_factory=list)
    summary_addon: str = ""


class VerificationDiagnostics(BaseModel):
    candidate_facts: list[str] = Field(default_factory=list)
    kept_summary_sentences: int = 0
    dropped_summary_sentences: int = 0
    evidence_coverage_score: int = 0


class VerificationResult(BaseModel):
    """Outcome of validating a facts draft against evidence."""

    facts: list[str] = Field(default_factory=list)
    summary: str
    status: VerificationStatus
    verified_fact_count: int = Field(default=0, ge=0)
    source_names_used: list[str] = Field(default_factory=list)
    latency_ms: int = Field(default=0, ge=0)
    diagnostics: VerificationDiagnostics = Field(default_factory=VerificationDiagnostics)
