"""End-to-end tests for the recognition pipeline with fake model and providers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
import pytest

from artlens.config import OperatingMode, Settings
from artlens.core.deadline import Deadline
from artlens.errors import RecognitionError
from artlens.evidence.cache import ResultCache
from artlens.evidence.orchestrator import EvidenceOrchestrator, PhaseAReport
from artlens.orchestrator.pipeline import EvidenceOptions, RecognitionPipeline
from artlens.recognition import FactsDraftGenerator, RecognitionPassRunner
from artlens.recording import MemoryTraceRecorder

from conftest import STARRY_NIGHT, ScriptedClient, StaticProvider, record

IMAGE = b"\x89PNG\r\n\x1a\nfake-png"

DRAFT = {
    "facts": [
        "Painted during his stay at Saint-Rémy in 1889.",
        "Painted in 1990 while he lived in Arles.",
        "The Starry Night depicts the view from his asylum window.",
    ],
    "summary_addon": "Vincent van Gogh painted it from memory. It was exhibited in 1990.",
}


def _primary_records() -> list[Any]:
    return [
        record("title", "The Starry Night"),
        record("creator", "Vincent van Gogh"),
        record("date", "1889"),
    ]


def _build(
    *,
    mode: OperatingMode = "enrich",
    recognition: ScriptedClient | None = None,
    facts: ScriptedClient | None = None,
    primary: StaticProvider | None = None,
    secondaries: list[StaticProvider] | None = None,
    orchestrator: Any = None,
    cache: ResultCache | None = None,
    options: EvidenceOptions | None = None,
    clock: Any = None,
) -> tuple[RecognitionPipeline, MemoryTraceRecorder]:
    recorder = MemoryTraceRecorder()
    runner = RecognitionPassRunner(recognition or ScriptedClient(STARRY_NIGHT), model="vision-test")
    timing: dict[str, Any] = {"clock": clock} if clock is not None else {}
    if orchestrator is None:
        orchestrator = EvidenceOrchestrator(
            primary or StaticProvider("Wikimedia", _primary_records()),
            secondaries if secondaries is not None else [StaticProvider("Art Institute of Chicago")],
            **timing,
        )
    pipeline = RecognitionPipeline(
        runner=runner,
        orchestrator=orchestrator,
        facts_generator=FactsDraftGenerator(facts or ScriptedClient(DRAFT), model="facts-test"),
        cache=cache if cache is not None else ResultCache(60_000),
        mode=mode,
        options=options or EvidenceOptions(global_budget_ms=5000, provider_timeout_ms=2000, phase_a_budget_ms=2000),
        recorder=recorder,
        **timing,
    )
    return pipeline, recorder


@pytest.mark.asyncio
async def test_enrich_applies_verified_facts() -> None:
    """It should attach only supported facts and summary sentences."""

    pipeline, recorder = _build()

    result = await pipeline.recognize(IMAGE, "image/png", request_id="req_enrich")

    assert result.request_id == "req_enrich"
    assert result.title == "The Starry Night"
    assert result.facts == [
        "Painted during his stay at Saint-Rémy in 1889.",
        "The Starry Night depicts the view from his asylum window.",
    ]
    assert result.summary == f"{STARRY_NIGHT['summary']} Vincent van Gogh painted it from memory."
    assert result.fact_check is not None
    assert result.fact_check.status == "verified"
    assert result.fact_check.verified_facts == 2
    assert result.fact_check.sources == ["Wikimedia"]
    assert not result.fact_check.cached
    assert recorder.stages("req_enrich") == [
        "received",
        "validated",
        "primary_pass",
        "unknown_check",
        "evidence_fetch",
        "facts_draft",
        "validate_merge",
        "respond",
    ]


@pytest.mark.asyncio
async def test_cache_hit_skips_evidence() -> None:
    """It should reuse a cached verification for the same subject."""

    primary = StaticProvider("Wikimedia", _primary_records())
    pipeline, recorder = _build(
        recognition=ScriptedClient(STARRY_NIGHT, {**STARRY_NIGHT, "title": "the starry night"}),
        facts=ScriptedClient(DRAFT),
        primary=primary,
    )

    first = await pipeline.recognize(IMAGE, "image/png", request_id="req_1")
    second = await pipeline.recognize(IMAGE, "image/png", request_id="req_2")

    assert primary.calls == 1
    assert second.fact_check is not None
    assert second.fact_check.cached
    assert second.facts == first.facts
    assert "cache_hit" in recorder.stages("req_2")
    assert len(pipeline.cache) == 1


@pytest.mark.asyncio
async def test_shadow_mode_returns_plain_result() -> None:
    """It should verify and cache but return the unenriched recognition."""

    primary = StaticProvider("Wikimedia", _primary_records())
    pipeline, recorder = _build(mode="shadow", primary=primary)

    result = await pipeline.recognize(IMAGE, "image/png", request_id="req_shadow")

    assert primary.calls == 1
    assert result.facts == []
    assert result.summary == STARRY_NIGHT["summary"]
    assert result.fact_check is None
    assert len(pipeline.cache) == 1
    assert "validate_merge" in recorder.stages()


@pytest.mark.asyncio
async def test_off_mode_skips_evidence() -> None:
    """It should not contact providers when enrichment is off."""

    primary = StaticProvider("Wikimedia", _primary_records())
    pipeline, recorder = _build(mode="off", primary=primary)

    result = await pipeline.recognize(IMAGE, "image/png", request_id="req_off")

    assert primary.calls == 0
    assert result.fact_check is None
    assert recorder.events[-2].stage.value == "skip"
    assert recorder.events[-2].data == {"reason": "mode_off"}


@pytest.mark.asyncio
async def test_low_confidence_skips_evidence() -> None:
    """It should not fact-check a subject that stays low confidence after refinement."""

    low = {**STARRY_NIGHT, "confidence": "low"}
    primary = StaticProvider("Wikimedia", _primary_records())
    pipeline, recorder = _build(recognition=ScriptedClient(low, low), primary=primary)

    result = await pipeline.recognize(IMAGE, "image/png", request_id="req_low")

    assert result.passes == 2
    assert result.fact_check is None
    assert primary.calls == 0
    assert recorder.stages() == [
        "received",
        "validated",
        "primary_pass",
        "retry_pass",
        "unknown_check",
        "skip",
        "respond",
    ]
    assert recorder.events[5].data == {"reason": "low_confidence"}


@pytest.mark.asyncio
async def test_partial_identity_skips_evidence() -> None:
    """It should skip evidence when the creator is still unknown."""

    partial = {**STARRY_NIGHT, "creator": "unknown"}
    pipeline, recorder = _build(recognition=ScriptedClient(partial, partial))

    result = await pipeline.recognize(IMAGE, "image/png")

    assert result.creator == "unknown"
    assert result.fact_check is None
    skip = [e for e in recorder.events if e.stage.value == "skip"]
    assert skip[0].data == {"reason": "unresolved_identity"}


@pytest.mark.asyncio
async def test_draft_skipped_on_thin_primary_coverage() -> None:
    """It should not ask for a facts draft when the primary provider found too little."""

    facts = ScriptedClient(DRAFT)
    pipeline, recorder = _build(
        facts=facts,
        primary=StaticProvider("Wikimedia", [record("title", "The Starry Night")]),
    )

    result = await pipeline.recognize(IMAGE, "image/png")

    assert facts.calls == []
    assert result.facts == []
    assert result.fact_check is not None
    assert result.fact_check.status == "partial"
    draft_events = [e for e in recorder.events if e.stage.value == "facts_draft"]
    assert draft_events[0].data["reason"] == "insufficient_primary_coverage"


@pytest.mark.asyncio
async def test_no_evidence_is_not_cached() -> None:
    """It should report skipped_no_evidence and leave the cache empty."""

    pipeline, _ = _build(primary=StaticProvider("Wikimedia"), secondaries=[])

    result = await pipeline.recognize(IMAGE, "image/png")

    assert result.fact_check is not None
    assert result.fact_check.status == "skipped_no_evidence"
    assert result.summary == STARRY_NIGHT["summary"]
    assert len(pipeline.cache) == 0


@pytest.mark.asyncio
async def test_evidence_failure_degrades_to_recognition_result() -> None:
    """It should still answer when the evidence stage blows up."""

    class BrokenOrchestrator:
        async def fetch_evidence(self, *args: Any, **kwargs: Any) -> Any:
            raise RuntimeError("evidence backend exploded")

    pipeline, _ = _build(orchestrator=BrokenOrchestrator())

    result = await pipeline.recognize(IMAGE, "image/png")

    assert result.title == "The Starry Night"
    assert result.facts == []
    assert result.fact_check is not None
    assert result.fact_check.status == "skipped_no_evidence"


@pytest.mark.asyncio
async def test_recognition_failure_is_traced_and_raised() -> None:
    """It should record a failed stage and re-raise the recognition error."""

    pipeline, recorder = _build(recognition=ScriptedClient(RecognitionError("billing", "quota")))

    with pytest.raises(RecognitionError) as exc:
        await pipeline.recognize(IMAGE, "image/png", request_id="req_fail")

    assert exc.value.kind == "billing"
    assert recorder.stages("req_fail")[-1] == "failed"


@pytest.mark.asyncio
async def test_empty_image_is_rejected() -> None:
    """It should reject empty input before calling the model."""

    recognition = ScriptedClient()
    pipeline, recorder = _build(recognition=recognition)

    with pytest.raises(RecognitionError) as exc:
        await pipeline.recognize(b"", "image/png")

    assert exc.value.kind == "bad_request"
    assert recognition.calls == []
    assert recorder.stages() == ["received", "failed"]


def _tight_options() -> EvidenceOptions:
    return EvidenceOptions(
        global_budget_ms=2500,
        provider_timeout_ms=2500,
        phase_a_budget_ms=2300,
        response_buffer_ms=200,
        facts_draft_timeout_ms=1800,
        facts_draft_min_ms=400,
    )


@pytest.mark.asyncio
async def test_draft_skipped_when_phase_a_leaves_too_little_time(fake_clock: Any) -> None:
    """It should not start the facts draft with less than the minimum left before the hard stop."""

    facts = ScriptedClient(DRAFT)
    pipeline, recorder = _build(
        facts=facts,
        primary=StaticProvider("Wikimedia", _primary_records(), clock=fake_clock, delay_ms=2000),
        secondaries=[],
        options=_tight_options(),
        clock=fake_clock,
    )

    result = await pipeline.recognize(IMAGE, "image/png")

    assert facts.calls == []
    assert result.facts == []
    assert result.fact_check is not None
    assert result.fact_check.status == "partial"
    draft_events = [e for e in recorder.events if e.stage.value == "facts_draft"]
    assert draft_events[0].data == {"skipped": True, "reason": "insufficient_budget", "remaining_ms": 300}


@pytest.mark.asyncio
async def test_draft_timeout_is_capped_by_time_left(fake_clock: Any) -> None:
    """It should give the facts draft no more time than remains before the hard stop."""

    facts = ScriptedClient(DRAFT)
    pipeline, recorder = _build(
        facts=facts,
        primary=StaticProvider("Wikimedia", _primary_records(), clock=fake_clock, delay_ms=1000),
        secondaries=[],
        options=_tight_options(),
        clock=fake_clock,
    )

    result = await pipeline.recognize(IMAGE, "image/png")

    assert len(facts.calls) == 1
    assert result.fact_check is not None
    assert result.fact_check.status == "verified"
    draft_events = [e for e in recorder.events if e.stage.value == "facts_draft"]
    assert draft_events[0].data == {"skipped": False, "timeout_ms": 1300}


@pytest.mark.asyncio
async def test_crashed_draft_keeps_evidence() -> None:
    """It should validate against the evidence without a draft when the draft call crashes."""

    facts = ScriptedClient(RuntimeError("draft backend exploded"))
    pipeline, _ = _build(facts=facts)

    result = await pipeline.recognize(IMAGE, "image/png")

    assert len(facts.calls) == 1
    assert result.facts == []
    assert result.fact_check is not None
    assert result.fact_check.status == "partial"
    assert result.fact_check.sources == ["Wikimedia"]


class _StalledOrchestrator:
    """Reports rich primary coverage, then never finishes Phase B."""

    def __init__(self) -> None:
        self.release = asyncio.Event()

    async def fetch_evidence(self, subject: Any, *, on_phase_a: Any = None, **kwargs: Any) -> Any:
        on_phase_a(
            PhaseAReport(
                primary_coverage_score=3,
                records=[],
                deadline=Deadline.after(2500),
                hard_stop=Deadline.after(2300),
            )
        )
        await self.release.wait()
        raise AssertionError("evidence fetch was released")


class _SlowFacts:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def complete(self, messages: Any, **kwargs: Any) -> str:
        self.started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ""


@pytest.mark.asyncio
async def test_cancelled_request_cancels_pending_draft() -> None:
    """It should cancel the running facts draft when the request itself is cancelled."""

    facts = _SlowFacts()
    pipeline, _ = _build(facts=facts, orchestrator=_StalledOrchestrator())  # type: ignore[arg-type]

    task = asyncio.create_task(pipeline.recognize(IMAGE, "image/png"))
    await asyncio.wait_for(facts.started.wait(), timeout=1.0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.05)

    assert facts.cancelled


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, trace_dir=None, **overrides)  # type: ignore[call-arg]


@pytest.mark.asyncio
async def test_from_settings_shares_one_http_client() -> None:
    """It should send model calls through the same transport as the knowledge providers."""

    hosts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "llm.test":
            return httpx.Response(
                200,
                json={
                    "id": "chatcmpl-1",
                    "object": "chat.completion",
                    "created": 0,
                    "model": "vision-test",
                    "choices": [
                        {
                            "index": 0,
                            "finish_reason": "stop",
                            "message": {"role": "assistant", "content": json.dumps(STARRY_NIGHT)},
                        }
                    ],
                },
            )
        return httpx.Response(404)

    settings = _settings(openai_api_key="sk-test", openai_base_url="https://llm.test/v1", mode="off")
    pipeline = RecognitionPipeline.from_settings(settings, transport=httpx.MockTransport(handler))
    try:
        result = await pipeline.recognize(IMAGE, "image/png")
    finally:
        await pipeline.aclose()

    assert result.title == "The Starry Night"
    assert result.fact_check is None
    assert hosts == ["llm.test"]


@pytest.mark.asyncio
async def test_from_settings_warns_without_api_key(caplog: pytest.LogCaptureFixture) -> None:
    """It should warn at wiring time when no model key is configured."""

    with caplog.at_level(logging.WARNING, logger="artlens.orchestrator.pipeline"):
        pipeline = RecognitionPipeline.from_settings(_settings(openai_api_key=None))
    await pipeline.aclose()

    assert "ARTLENS_OPENAI_API_KEY is not set" in caplog.text
