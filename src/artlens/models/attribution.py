"""Attribution models.

A :class:`SubjectAttribution` is produced once per recognition pass and is immutable once
accepted. Later stages only build an :class:`AttributionResult` around it, appending to the
summary and attaching verified facts.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from artlens.utils.text import UNKNOWN, is_unknown

Confidence = Literal["high", "medium", "low"]
VerificationStatus = Literal["verified", "partial", "skipped_timeout", "skipped_no_evidence"]

_CONFIDENCES = ("high", "medium", "low")


def as_text(value: Any) -> str:
    """Coerce a model-provided value to a safe, non-empty string."""

    if not isinstance(value, str):
        return UNKNOWN
    trimmed = value.strip()
    return trimmed if trimmed else UNKNOWN


def as_confidence(value: Any) -> Confidence:
    if not isinstance(value, str):
        return "low"
    normalized = value.strip().lower()
    return normalized if normalized in _CONFIDENCES else "low"  # type: ignore[return-value]


class SubjectAttribution(BaseModel):
    """Structured identification of a painting.

    Unresolved fields hold the sentinel ``"unknown"``; they are never absent. The legacy key
    names ``painting``, ``artist``, ``year`` and ``museum`` are accepted on input.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: str = Field(default=UNKNOWN, validation_alias=AliasChoices("title", "painting"))
    creator: str = Field(default=UNKNOWN, validation_alias=AliasChoices("creator", "artist"))
    date: str = Field(default=UNKNOWN, validation_alias=AliasChoices("date", "year"))
    location: str = Field(default=UNKNOWN, validation_alias=AliasChoices("location", "museum"))
    style: str = Field(default=UNKNOWN)
    confidence: Confidence = Field(default="low")
    reasoning: str = Field(default=UNKNOWN)
    summary: str = Field(default=UNKNOWN)

    @field_validator("title", "creator", "date", "location", "style", "reasoning", "summary", mode="before")
    @classmethod
    def _sanitize_text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _sanitize_confidence(cls, value: Any) -> Confidence:
        return as_confidence(value)

    @property
    def title_unknown(self) -> bool:
        return is_unknown(self.title)

    @property
    def creator_unknown(self) -> bool:
        return is_unknown(self.creator)

    @property
    def fully_unresolved(self) -> bool:
        """Both title and creator are unknown; nothing can be fact-checked."""

        return self.title_unknown and self.creator_unknown

    @property
    def resolved_identity_fields(self) -> int:
        """How many of title and creator are named."""

        return int(not self.title_unknown) + int(not self.creator_unknown)

    @property
    def needs_refinement(self) -> bool:
        return self.confidence == "low" or self.title_unknown or self.creator_unknown

    def query_text(self) -> str:
        """Free-text subject description used to query knowledge providers."""

        parts = [v for v in (self.title, self.creator) if not is_unknown(v)]
        return " ".join(parts).strip()


class FactCheck(BaseModel):
    """Verification metadata attached to an enriched response."""

    status: VerificationStatus
    verified_facts: int = Field(ge=0)
    sources: list[str] = Field(default_factory=list)
    latency_ms: int = Field(ge=0)
    cached: bool = False


class AttributionResult(BaseModel):
    """Final response of one recognition request."""

    request_id: str
    title: str
    creator: str
    date: str
    location: str
    style: str
    confidence: Confidence
    reasoning: str
    summary: str
    facts: list[str] = Field(default_factory=list)
    fact_check: FactCheck | None = None
    passes: int = Field(default=1, ge=1, le=2)

    @classmethod
    def from_attribution(cls, attribution: SubjectAttribution, *, request_id: str, passes: int) -> "AttributionResult":
        return cls(
            request_id=request_id,
            passes=passes,
            **attribution.model_dump(),
        )
