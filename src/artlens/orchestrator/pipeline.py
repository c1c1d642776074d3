"""Recognition pipeline coordinator.

One request walks through::

    received -> validated -> primary_pass -> [retry_pass] -> unknown_check
        -> (skip | cache_hit | evidence_fetch -> facts_draft? -> validate_merge) -> respond

The operating mode decides only what happens downstream of recognition: ``off`` skips
evidence, ``shadow`` verifies and logs but returns the plain recognition result, ``enrich``
applies the verified facts and summary.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from artlens.config import OperatingMode, Settings
from artlens.core.deadline import Clock, Deadline
from artlens.errors import RecognitionError
from artlens.events import PipelineStage, TraceEvent
from artlens.evidence.cache import ResultCache
from artlens.evidence.orchestrator import EvidenceOrchestrator, PhaseAReport
from artlens.evidence.validator import validate_and_merge
from artlens.llm.client import VisionLLMClient
from artlens.logging import get_logger, log_exception, request_context, set_stage
from artlens.models.attribution import AttributionResult, FactCheck, SubjectAttribution
from artlens.models.evidence import FactsDraft, VerificationResult
from artlens.providers import ArtInstituteChicagoProvider, ClevelandMuseumProvider, WikimediaProvider, create_http_client
from artlens.recognition.facts_draft import FactsDraftGenerator
from artlens.recognition.runner import RecognitionPassRunner
from artlens.recording import FileTraceRecorder, TraceRecorder
from artlens.utils.ids import new_request_id

logger = get_logger(__name__)

# Statuses worth remembering; skipped results depend on transient budget conditions.
CACHEABLE_STATUSES = frozenset({"verified", "partial"})
MIN_PRIMARY_COVERAGE_FOR_DRAFT = 2


@dataclass(frozen=True)
class EvidenceOptions:
    """Budget and enrichment knobs, immutable for the life of the pipeline."""

    global_budget_ms: int = 2500
    provider_timeout_ms: int = 1200
    phase_a_budget_ms: int = 900
    response_buffer_ms: int = 200
    max_facts: int = 3
    facts_draft_timeout_ms: int = 1800
    facts_draft_min_ms: int = 400

    @classmethod
    def from_settings(cls, settings: Settings) -> "EvidenceOptions":
        return cls(
            global_budget_ms=settings.evidence_budget_ms,
            provider_timeout_ms=settings.provider_timeout_ms,
            phase_a_budget_ms=settings.phase_a_budget_ms,
            response_buffer_ms=settings.response_buffer_ms,
            max_facts=settings.max_facts,
            facts_draft_timeout_ms=settings.facts_draft_timeout_ms,
            facts_draft_min_ms=settings.facts_draft_min_ms,
        )


@dataclass
class _Tracer:
    request_id: str
    recorder: TraceRecorder | None = None
    seq: int = 0
    events: list[TraceEvent] = field(default_factory=list)

    def emit(self, stage: PipelineStage, **data: Any) -> TraceEvent:
        self.seq += 1
        event = TraceEvent(request_id=self.request_id, seq=self.seq, stage=stage, data=data)
        set_stage(stage.value)
        logger.info("stage=%s %s", stage.value, data or "")
        if self.recorder is not None:
            self.recorder.append(event)
        self.events.append(event)
        return event


def _skip_reason(attribution: SubjectAttribution) -> str | None:
    if attribution.title_unknown or attribution.creator_unknown:
        return "unresolved_identity"
    if attribution.confidence == "low":
        return "low_confidence"
    return None


class RecognitionPipeline:
    """Root coordinator for ``recognize(image, media_type, request_id)``."""

    def __init__(
        self,
        *,
        runner: RecognitionPassRunner,
        orchestrator: EvidenceOrchestrator,
        facts_generator: FactsDraftGenerator | None,
        cache: ResultCache,
        mode: OperatingMode = "enrich",
        options: EvidenceOptions | None = None,
        recorder: TraceRecorder | None = None,
        clock: Clock = time.monotonic,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._runner = runner
        self._orchestrator = orchestrator
        self._facts_generator = facts_generator
        self._cache = cache
        self._mode: OperatingMode = mode
        self._options = options or EvidenceOptions()
        self._recorder = recorder
        self._clock = clock
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        cache: ResultCache | None = None,
        recorder: TraceRecorder | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "RecognitionPipeline":
        """Wire the production pipeline from settings.

        Args:
            settings: Process-wide settings.
            cache: Shared result cache; a new one is created when omitted.
            recorder: Trace recorder; defaults to a JSONL file under ``trace_dir`` if set.
            transport: Optional HTTP transport for the knowledge providers and the model client,
                which share one connection pool.
        """

        http_client = create_http_client(settings, transport=transport)
        llm = VisionLLMClient(settings, http_client=http_client)
        if not llm.configured:
            logger.warning("ARTLENS_OPENAI_API_KEY is not set; recognition requests will fail")
        runner = RecognitionPassRunner(
            llm,
            model=settings.recognition_model,
            timeout_s=settings.recognition_timeout_s,
            max_tokens=settings.recognition_max_tokens,
            temperature=settings.recognition_temperature,
        )
        orchestrator = EvidenceOrchestrator(
            WikimediaProvider(http_client, languages=tuple(settings.wikimedia_languages)),
            [ArtInstituteChicagoProvider(http_client), ClevelandMuseumProvider(http_client)],
        )
        if recorder is None and settings.trace_dir is not None:
            recorder = FileTraceRecorder(settings.trace_dir / "traces.jsonl")

        return cls(
            runner=runner,
            orchestrator=orchestrator,
            facts_generator=FactsDraftGenerator(llm, model=settings.facts_model),
            cache=cache if cache is not None else ResultCache(settings.cache_ttl_ms),
            mode=settings.mode,
            options=EvidenceOptions.from_settings(settings),
            recorder=recorder,
            http_client=http_client,
        )

    @property
    def mode(self) -> OperatingMode:
        return self._mode

    @property
    def cache(self) -> ResultCache:
        return self._cache

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def recognize(
        self,
        image: bytes,
        media_type: str,
        request_id: str | None = None,
    ) -> AttributionResult:
        """Identify a painting and, depending on mode, enrich it with verified facts.

        Raises:
            RecognitionError: When no usable identification could be produced.
        """

        request_id = request_id or new_request_id()
        tracer = _Tracer(request_id=request_id, recorder=self._recorder)

        with request_context(request_id=request_id, stage=PipelineStage.RECEIVED.value):
            tracer.emit(PipelineStage.RECEIVED, bytes=len(image or b""), media_type=media_type, mode=self._mode)
            try:
                if not image:
                    raise RecognitionError("bad_request", "image is required")
                tracer.emit(PipelineStage.VALIDATED)

                outcome = await self._runner.recognize(
                    image,
                    media_type,
                    on_pass=lambda stage, data: tracer.emit(PipelineStage(stage), **data),
                )
            except RecognitionError as e:
                tracer.emit(PipelineStage.FAILED, kind=e.kind, message=e.message)
                raise

            attribution = outcome.attribution
            tracer.emit(
                PipelineStage.UNKNOWN_CHECK,
                title_unknown=attribution.title_unknown,
                creator_unknown=attribution.creator_unknown,
                confidence=attribution.confidence,
            )
            result = AttributionResult.from_attribution(attribution, request_id=request_id, passes=outcome.passes)

            if self._mode == "off":
                tracer.emit(PipelineStage.SKIP, reason="mode_off")
                return self._respond(tracer, result)

            reason = _skip_reason(attribution)
            if reason is not None:
                tracer.emit(PipelineStage.SKIP, reason=reason)
                return self._respond(tracer, result)

            key = self._cache.key_for(attribution)
            verification = self._cache.get(key)
            cached = verification is not None
            if verification is not None:
                tracer.emit(PipelineStage.CACHE_HIT, key=key, status=verification.status)
            else:
                verification = await self._verify(attribution, tracer)
                if verification.status in CACHEABLE_STATUSES:
                    self._cache.put(key, verification)

            return self._respond(tracer, self._apply(result, verification, cached=cached))

    def _apply(self, result: AttributionResult, verification: VerificationResult, *, cached: bool) -> AttributionResult:
        if self._mode != "enrich":
            logger.info(
                "Shadow verification outcome",
                extra={
                    "status": verification.status,
                    "verified_facts": verification.verified_fact_count,
                    "sources": verification.source_names_used,
                    "cached": cached,
                },
            )
            return result
        return result.model_copy(
            update={
                "summary": verification.summary,
                "facts": list(verification.facts),
                "fact_check": FactCheck(
                    status=verification.status,
                    verified_facts=verification.verified_fact_count,
                    sources=list(verification.source_names_used),
                    latency_ms=verification.latency_ms,
                    cached=cached,
                ),
            }
        )

    def _respond(self, tracer: _Tracer, result: AttributionResult) -> AttributionResult:
        tracer.emit(
            PipelineStage.RESPOND,
            passes=result.passes,
            facts=len(result.facts),
            status=result.fact_check.status if result.fact_check else None,
        )
        return result

    async def _verify(self, attribution: SubjectAttribution, tracer: _Tracer) -> VerificationResult:
        """Evidence fetch, optional facts draft, then validation. Never raises."""

        opts = self._options
        started = Deadline.after(0, clock=self._clock)
        budget_end = started.shifted(opts.global_budget_ms)
        draft_task: asyncio.Task[FactsDraft | None] | None = None

        def on_phase_a(report: PhaseAReport) -> None:
            nonlocal draft_task
            remaining = report.hard_stop.remaining_ms()
            if self._facts_generator is None:
                tracer.emit(PipelineStage.FACTS_DRAFT, skipped=True, reason="disabled")
            elif report.primary_coverage_score < MIN_PRIMARY_COVERAGE_FOR_DRAFT:
                tracer.emit(
                    PipelineStage.FACTS_DRAFT,
                    skipped=True,
                    reason="insufficient_primary_coverage",
                    primary_coverage_score=report.primary_coverage_score,
                )
            elif remaining < opts.facts_draft_min_ms:
                tracer.emit(PipelineStage.FACTS_DRAFT, skipped=True, reason="insufficient_budget", remaining_ms=int(remaining))
            else:
                timeout_ms = min(opts.facts_draft_timeout_ms, remaining)
                tracer.emit(PipelineStage.FACTS_DRAFT, skipped=False, timeout_ms=int(timeout_ms))
                draft_task = asyncio.create_task(
                    self._facts_generator.generate(attribution, max_facts=opts.max_facts, timeout_ms=timeout_ms)
                )

        tracer.emit(PipelineStage.EVIDENCE_FETCH, budget_ms=opts.global_budget_ms)
        try:
            bundle = await self._orchestrator.fetch_evidence(
                attribution,
                global_budget_ms=opts.global_budget_ms,
                per_provider_timeout_ms=opts.provider_timeout_ms,
                phase_a_budget_ms=opts.phase_a_budget_ms,
                response_buffer_ms=opts.response_buffer_ms,
                on_phase_a=on_phase_a,
            )
            draft = await self._await_draft(draft_task)
            latency_ms = int(started.now_ms() - started.at_ms)
            verification = validate_and_merge(
                attribution,
                draft,
                bundle,
                max_facts=opts.max_facts,
                latency_ms=latency_ms,
                timed_out=bundle.timed_out,
            )
        except Exception:
            log_exception(logger, "Evidence verification failed; returning recognition result")
            status = "skipped_timeout" if budget_end.expired() else "skipped_no_evidence"
            verification = VerificationResult(
                facts=[],
                summary=attribution.summary,
                status=status,
                latency_ms=int(started.now_ms() - started.at_ms),
            )
        finally:
            # Covers cancellation of the request too
            if draft_task is not None and not draft_task.done():
                draft_task.cancel()

        tracer.emit(
            PipelineStage.VALIDATE_MERGE,
            status=verification.status,
            verified_facts=verification.verified_fact_count,
            sources=verification.source_names_used,
            candidate_facts=len(verification.diagnostics.candidate_facts),
            coverage_score=verification.diagnostics.evidence_coverage_score,
            latency_ms=verification.latency_ms,
        )
        return verification

    @staticmethod
    async def _await_draft(task: asyncio.Task[FactsDraft | None] | None) -> FactsDraft | None:
        """Result of the draft task; a crashed draft counts as no draft."""

        if task is None:
            return None
        try:
            return await task
        except Exception:
            log_exception(logger, "Facts draft crashed; validating without a draft")
            return None
