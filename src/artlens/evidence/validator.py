"""Evidence-grounded validation of model-proposed enrichment.

The validator is a pure function of its inputs. A candidate fact or summary sentence is kept
only when it is *supported*:

    * it asserts no year that is absent from every known year value (strict rejection);
    * and it either names a known title/creator/location/style value (strong match) or shares
      enough evidence tokens with the collected records (weak match).

Nothing unsupported ever reaches the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from artlens.models.attribution import SubjectAttribution, VerificationStatus
from artlens.models.evidence import (
    EvidenceBundle,
    FactsDraft,
    VerificationDiagnostics,
    VerificationResult,
)
from artlens.utils.text import (
    UNKNOWN,
    contains_phrase,
    extract_years,
    normalize,
    split_sentences,
    tokenize,
)

DEFAULT_MAX_FACTS = 3
MAX_FACTS_CAP = 5
MAX_SUMMARY_SENTENCES = 2
MIN_FACT_CHARS = 12
MIN_STRONG_VALUE_CHARS = 4
SHORT_CANDIDATE_TOKENS = 7


@dataclass
class CanonicalKnowledge:
    """Normalized known values per field plus the evidence token pool."""

    title: set[str] = field(default_factory=set)
    creator: set[str] = field(default_factory=set)
    date: set[str] = field(default_factory=set)
    location: set[str] = field(default_factory=set)
    style: set[str] = field(default_factory=set)
    evidence_tokens: set[str] = field(default_factory=set)

    def add(self, field_name: str, value: str) -> None:
        bucket = getattr(self, field_name, None)
        if not isinstance(bucket, set) or field_name == "evidence_tokens":
            return
        normalized = normalize(value)
        if not normalized or normalized == UNKNOWN:
            return
        bucket.add(normalized)

    def strong_values(self) -> list[str]:
        values = self.title | self.creator | self.location | self.style
        return sorted(v for v in values if len(v) >= MIN_STRONG_VALUE_CHARS)


def build_knowledge(subject: SubjectAttribution, evidence: EvidenceBundle) -> CanonicalKnowledge:
    knowledge = CanonicalKnowledge()
    knowledge.add("title", subject.title)
    knowledge.add("creator", subject.creator)
    knowledge.add("date", subject.date)
    knowledge.add("location", subject.location)
    knowledge.add("style", subject.style)

    for record in evidence.records:
        knowledge.add(record.field, record.value)
        knowledge.evidence_tokens.update(tokenize(record.value))
    return knowledge


def has_year_conflict(text: str, known_years: set[str]) -> bool:
    if not known_years:
        return False
    for year in extract_years(text):
        if not any(year in known for known in known_years):
            return True
    return False


def has_core_field_mention(text: str, knowledge: CanonicalKnowledge) -> bool:
    return any(contains_phrase(text, value) for value in knowledge.strong_values())


def has_evidence_token_support(text: str, tokens: set[str]) -> bool:
    if not tokens:
        return False
    candidates = tokenize(text)
    if not candidates:
        return False
    matched = sum(1 for t in candidates if t in tokens)
    return matched >= 2 or (matched >= 1 and len(candidates) <= SHORT_CANDIDATE_TOKENS)


def is_supported(text: str, knowledge: CanonicalKnowledge) -> bool:
    """Support predicate shared by facts and summary sentences."""

    if not text or not text.strip():
        return False
    if has_year_conflict(text, knowledge.date):
        return False
    if has_core_field_mention(text, knowledge):
        return True
    return has_evidence_token_support(text, knowledge.evidence_tokens)


def dedupe_facts(facts: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for fact in facts:
        key = normalize(fact)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(fact.strip())
    return out


def choose_status(
    evidence: EvidenceBundle,
    *,
    timed_out: bool,
    verified_facts: int,
    kept_sentences: int,
) -> VerificationStatus:
    if not evidence.records:
        return "skipped_timeout" if timed_out else "skipped_no_evidence"
    if timed_out and verified_facts == 0 and kept_sentences == 0:
        return "skipped_timeout"
    if verified_facts >= 2 or kept_sentences >= 1:
        return "verified"
    return "partial"


def cited_sources(evidence: EvidenceBundle) -> list[str]:
    """Providers that succeeded and contributed at least one record."""

    names = [s.name for s in evidence.sources if s.ok and s.record_count > 0]
    return list(dict.fromkeys(names))


def validate_and_merge(
    subject: SubjectAttribution,
    draft: FactsDraft | None,
    evidence: EvidenceBundle,
    *,
    max_facts: int = DEFAULT_MAX_FACTS,
    latency_ms: int = 0,
    timed_out: bool = False,
) -> VerificationResult:
    """Keep only the draft content that the evidence supports.

    Args:
        subject: Accepted attribution; its summary is the base that may be appended to.
        draft: Optional model-proposed facts and summary addon.
        evidence: Evidence bundle to check against.
        max_facts: Maximum verified facts, clamped to 1..5.
        latency_ms: Reported verification latency.
        timed_out: Whether the evidence deadline was exceeded.

    Returns:
        The verification result.
    """

    safe_max = min(max(max_facts, 1), MAX_FACTS_CAP)
    knowledge = build_knowledge(subject, evidence)

    candidate_facts = [f.strip() for f in (draft.facts if draft else []) if len(f.strip()) >= MIN_FACT_CHARS]
    verified = dedupe_facts([f for f in candidate_facts if is_supported(f, knowledge)])[:safe_max]

    addon_sentences = split_sentences(draft.summary_addon if draft else "")
    kept = [s for s in addon_sentences if is_supported(s, knowledge)][:MAX_SUMMARY_SENTENCES]

    parts = [subject.summary.strip()]
    if kept:
        parts.append(" ".join(kept))
    merged = " ".join(p for p in parts if p).strip() or subject.summary

    return VerificationResult(
        facts=verified,
        summary=merged,
        status=choose_status(
            evidence,
            timed_out=timed_out,
            verified_facts=len(verified),
            kept_sentences=len(kept),
        ),
        verified_fact_count=len(verified),
        source_names_used=cited_sources(evidence),
        latency_ms=max(0, int(latency_ms)),
        diagnostics=VerificationDiagnostics(
            candidate_facts=candidate_facts,
            kept_summary_sentences=len(kept),
            dropped_summary_sentences=max(len(addon_sentences) - len(kept), 0),
            evidence_coverage_score=evidence.coverage_score,
        ),
    )
