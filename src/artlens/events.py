"""Trace events emitted at every pipeline stage transition.

Events are request-id-correlated so a single recognition can be followed end to end in logs
or replayed from a JSONL trace file.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PipelineStage(str, Enum):
    """Stages of one recognition request."""

    RECEIVED = "received"
    VALIDATED = "validated"
    PRIMARY_PASS = "primary_pass"
    RETRY_PASS = "retry_pass"
    UNKNOWN_CHECK = "unknown_check"
    SKIP = "skip"
    CACHE_HIT = "cache_hit"
    EVIDENCE_FETCH = "evidence_fetch"
    FACTS_DRAFT = "facts_draft"
    VALIDATE_MERGE = "validate_merge"
    RESPOND = "respond"
    FAILED = "failed"


class TraceEvent(BaseModel):
    """A single event in a request trace."""

    request_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stage: PipelineStage
    data: dict[str, Any] = Field(default_factory=dict)
