"""Shared fixtures and fakes for ArtLens tests."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Sequence

import pytest

from artlens.core.deadline import Deadline
from artlens.llm.client import ChatMessage
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import EvidenceRecord, ProviderTier
from artlens.providers.base import ProviderOutput, build_output


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    """Keep handlers installed by configure_logging from leaking across tests."""

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


class Hang:
    """Scripted response that never answers in time."""

    def __init__(self, seconds: float = 5.0) -> None:
        self.seconds = seconds


class ScriptedClient:
    """Completion client returning scripted answers in order."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[Sequence[ChatMessage]] = []
        self.models: list[str] = []

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: str,
        timeout_s: float,
        max_tokens: int = 500,
        temperature: float = 0.2,
    ) -> str:
        self.calls.append(messages)
        self.models.append(model)
        if not self.responses:
            raise AssertionError("unexpected model call")
        item = self.responses.pop(0)
        if isinstance(item, Hang):
            await asyncio.sleep(item.seconds)
            return ""
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return json.dumps(item)
        return item


@dataclass
class StaticProvider:
    """Provider returning fixed records, optionally advancing a fake clock."""

    name: str
    records: list[EvidenceRecord] = field(default_factory=list)
    url: str = "https://example.org"
    clock: FakeClock | None = None
    delay_ms: float = 0.0
    error: Exception | None = None
    calls: int = 0
    timeouts: list[float] = field(default_factory=list)

    async def fetch(
        self,
        subject: SubjectAttribution,
        *,
        deadline: Deadline,
        timeout_ms: float,
        tier: ProviderTier = "secondary",
    ) -> ProviderOutput:
        self.calls += 1
        self.timeouts.append(timeout_ms)
        if self.clock is not None and self.delay_ms:
            self.clock.advance(self.delay_ms)
        if self.error is not None:
            raise self.error
        return build_output(
            name=self.name,
            url=self.url,
            tier=tier,
            started=time.monotonic(),
            records=list(self.records),
        )


def record(field_name: str, value: str, source: str = "Wikimedia", confidence: str = "high") -> EvidenceRecord:
    return EvidenceRecord(
        field=field_name,  # type: ignore[arg-type]
        value=value,
        source_name=source,
        source_url="https://example.org",
        confidence=confidence,  # type: ignore[arg-type]
    )


STARRY_NIGHT = {
    "title": "The Starry Night",
    "creator": "Vincent van Gogh",
    "date": "1889",
    "location": "Museum of Modern Art",
    "style": "Post-Impressionism",
    "confidence": "high",
    "reasoning": "Swirling night sky over a village with a cypress in the foreground.",
    "summary": "A night sky swirls above a quiet village.",
}


@pytest.fixture
def starry_night() -> SubjectAttribution:
    return SubjectAttribution.model_validate(STARRY_NIGHT)


@pytest.fixture
def starry_records() -> list[EvidenceRecord]:
    return [
        record("title", "The Starry Night"),
        record("date", "1889"),
        record("creator", "Vincent van Gogh"),
    ]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
