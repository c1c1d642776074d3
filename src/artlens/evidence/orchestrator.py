"""Budgeted, phased evidence fetching.

Phase A queries the primary provider alone, so it always gets the first share of the budget.
Phase B fans out to the secondary providers concurrently, but only if enough time is left
before the hard stop. Every provider call is isolated: failures and timeouts turn into an
:class:`~artlens.providers.base.Err` result and never fail the bundle.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Sequence

from artlens.core.deadline import Clock, Deadline, run_with_timeout
from artlens.logging import get_logger
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import EvidenceBundle, EvidenceCoverage, EvidenceRecord, ProviderOutcome, ProviderTier
from artlens.providers.base import Err, KnowledgeProvider, Ok, ProviderResult

logger = get_logger(__name__)

DEFAULT_PHASE_A_BUDGET_MS = 900
DEFAULT_RESPONSE_BUFFER_MS = 200

MIN_GLOBAL_BUDGET_MS = 600
MIN_RESPONSE_BUFFER_MS = 80
MIN_PHASE_A_BUDGET_MS = 300
PHASE_B_MIN_REMAINING_MS = 220
MIN_SECONDARY_TIMEOUT_MS = 200
SECONDARY_BUDGET_SHARE = 0.9
# Lets a provider return what it has just past its stage deadline instead of being cancelled.
PROVIDER_GRACE_MS = 50


@dataclass(frozen=True)
class PhaseAReport:
    """Handed to the phase-A hook once primary evidence is in."""

    primary_coverage_score: int
    records: list[EvidenceRecord]
    deadline: Deadline
    hard_stop: Deadline


PhaseAHook = Callable[[PhaseAReport], None]


def failed_outcome(provider: KnowledgeProvider, tier: ProviderTier) -> ProviderOutcome:
    return ProviderOutcome(name=provider.name, url=provider.url, tier=tier, latency_ms=0, ok=False, record_count=0)


class EvidenceOrchestrator:
    """Run knowledge providers under a global time budget."""

    def __init__(
        self,
        primary: KnowledgeProvider,
        secondaries: Sequence[KnowledgeProvider] = (),
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._primary = primary
        self._secondaries = list(secondaries)
        self._clock = clock

    async def _run_isolated(
        self,
        provider: KnowledgeProvider,
        subject: SubjectAttribution,
        *,
        deadline: Deadline,
        timeout_ms: float,
        tier: ProviderTier,
    ) -> ProviderResult:
        try:
            output = await run_with_timeout(
                provider.fetch(subject, deadline=deadline, timeout_ms=timeout_ms, tier=tier),
                deadline.remaining_ms() + PROVIDER_GRACE_MS,
            )
            return Ok(output)
        except asyncio.TimeoutError:
            reason = "timeout"
        except Exception as e:  # providers are best-effort
            reason = f"{type(e).__name__}: {e}"

        logger.warning(
            "Evidence provider failed",
            extra={"provider": provider.name, "tier": tier, "reason": reason},
        )
        return Err(provider=provider.name, tier=tier, reason=reason)

    @staticmethod
    def _unpack(
        results: Sequence[tuple[KnowledgeProvider, ProviderResult]],
    ) -> tuple[list[EvidenceRecord], list[ProviderOutcome]]:
        records: list[EvidenceRecord] = []
        outcomes: list[ProviderOutcome] = []
        for provider, result in results:
            if isinstance(result, Ok):
                records.extend(result.output.records)
                outcomes.append(result.output.outcome)
            else:
                outcomes.append(failed_outcome(provider, result.tier))
        return records, outcomes

    async def fetch_evidence(
        self,
        subject: SubjectAttribution,
        *,
        global_budget_ms: float,
        per_provider_timeout_ms: float,
        phase_a_budget_ms: float = DEFAULT_PHASE_A_BUDGET_MS,
        response_buffer_ms: float = DEFAULT_RESPONSE_BUFFER_MS,
        on_phase_a: PhaseAHook | None = None,
    ) -> EvidenceBundle:
        """Fetch an evidence bundle for ``subject``.

        Args:
            subject: Accepted attribution to corroborate.
            global_budget_ms: Total budget for evidence fetching.
            per_provider_timeout_ms: Upper bound for a single provider call.
            phase_a_budget_ms: Upper bound for the primary-only phase.
            response_buffer_ms: Time reserved after providers finish to assemble a response.
            on_phase_a: Optional hook called with primary coverage right after Phase A.

        Returns:
            The combined evidence bundle.
        """

        started = Deadline.after(0, clock=self._clock)
        deadline = started.shifted(max(MIN_GLOBAL_BUDGET_MS, global_budget_ms))
        hard_stop = deadline.shifted(-max(MIN_RESPONSE_BUFFER_MS, response_buffer_ms))
        phase_a_stop = hard_stop.earliest(started.shifted(max(MIN_PHASE_A_BUDGET_MS, phase_a_budget_ms)))

        logger.info(
            "Evidence fetch start",
            extra={
                "budget_ms": max(MIN_GLOBAL_BUDGET_MS, global_budget_ms),
                "provider_timeout_ms": per_provider_timeout_ms,
                "phase_a_budget_ms": phase_a_budget_ms,
            },
        )

        # Phase A: primary only
        primary_result = await self._run_isolated(
            self._primary,
            subject,
            deadline=phase_a_stop,
            timeout_ms=per_provider_timeout_ms,
            tier="primary",
        )
        phase_a_records, phase_a_outcomes = self._unpack([(self._primary, primary_result)])
        primary_coverage = EvidenceCoverage.from_records(phase_a_records)

        if on_phase_a is not None:
            on_phase_a(
                PhaseAReport(
                    primary_coverage_score=primary_coverage.score,
                    records=list(phase_a_records),
                    deadline=deadline,
                    hard_stop=hard_stop,
                )
            )

        # Phase B: secondaries, concurrently, only with enough budget left
        phase_b_records: list[EvidenceRecord] = []
        phase_b_outcomes: list[ProviderOutcome] = []
        remaining_after_a = hard_stop.at_ms - hard_stop.now_ms()
        if self._secondaries and remaining_after_a > PHASE_B_MIN_REMAINING_MS:
            per_secondary_ms = max(
                MIN_SECONDARY_TIMEOUT_MS,
                min(per_provider_timeout_ms, int(remaining_after_a * SECONDARY_BUDGET_SHARE)),
            )
            logger.info("Evidence phase B start", extra={"remaining_ms": int(remaining_after_a)})
            results = await asyncio.gather(
                *(
                    self._run_isolated(
                        provider,
                        subject,
                        deadline=hard_stop,
                        timeout_ms=per_secondary_ms,
                        tier="secondary",
                    )
                    for provider in self._secondaries
                )
            )
            phase_b_records, phase_b_outcomes = self._unpack(list(zip(self._secondaries, results)))
        elif self._secondaries:
            logger.info(
                "Evidence phase B skipped",
                extra={"reason": "insufficient_budget", "remaining_ms": int(remaining_after_a)},
            )

        records = phase_a_records + phase_b_records
        coverage = EvidenceCoverage.from_records(records)
        now_ms = started.now_ms()
        latency_ms = max(0, int(now_ms - started.at_ms))
        timed_out = now_ms > deadline.at_ms

        bundle = EvidenceBundle(
            records=records,
            sources=phase_a_outcomes + phase_b_outcomes,
            coverage=coverage,
            coverage_score=coverage.score,
            primary_coverage_score=primary_coverage.score,
            timed_out=timed_out,
            latency_ms=latency_ms,
            fetched_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Evidence fetch end",
            extra={
                "latency_ms": latency_ms,
                "timed_out": timed_out,
                "source_count": len(bundle.sources),
                "record_count": len(records),
                "coverage_score": bundle.coverage_score,
                "primary_coverage_score": bundle.primary_coverage_score,
            },
        )
        return bundle
