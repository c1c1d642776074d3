"""Knowledge provider interface and shared HTTP helpers.

Providers are best-effort, read-only sources of evidence. They never raise into the
orchestrator on a normal miss; network and decoding problems surface as :class:`ProviderError`
and are converted into an :class:`Err` result by the caller.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, Union

import httpx

from artlens.config import Settings
from artlens.core.deadline import Deadline, run_with_timeout
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import EvidenceRecord, ProviderOutcome, ProviderTier
from artlens.utils.text import normalize

# Below this many milliseconds a request is not worth starting.
MIN_REQUEST_MS = 120


class ProviderError(RuntimeError):
    pass


@dataclass
class ProviderOutput:
    """Records returned by one provider call plus its outcome."""

    outcome: ProviderOutcome
    records: list[EvidenceRecord] = field(default_factory=list)


@dataclass(frozen=True)
class Ok:
    output: ProviderOutput


@dataclass(frozen=True)
class Err:
    provider: str
    tier: ProviderTier
    reason: str


ProviderResult = Union[Ok, Err]


class KnowledgeProvider(Protocol):
    """Provider interface."""

    name: str
    url: str

    async def fetch(
        self,
        subject: SubjectAttribution,
        *,
        deadline: Deadline,
        timeout_ms: float,
        tier: ProviderTier,
    ) -> ProviderOutput:
        """Query the provider for evidence about ``subject``."""


def create_http_client(settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Shared async client for all providers."""

    return httpx.AsyncClient(
        headers={"User-Agent": settings.http_user_agent, "Accept": "application/json"},
        follow_redirects=True,
        transport=transport,
    )


async def fetch_json(client: httpx.AsyncClient, url: str, timeout_ms: float) -> Any:
    """GET ``url`` and decode JSON within ``timeout_ms`` overall.

    Raises:
        ProviderError: On timeout, transport failure, non-2xx status or bad JSON.
    """

    if timeout_ms <= 0:
        raise ProviderError("no_budget")
    seconds = timeout_ms / 1000.0
    try:
        resp = await run_with_timeout(
            client.get(url, headers={"Accept": "application/json"}, timeout=httpx.Timeout(seconds)),
            timeout_ms,
        )
    except asyncio.TimeoutError as e:
        raise ProviderError("timeout") from e
    except httpx.TimeoutException as e:
        raise ProviderError("timeout") from e
    except httpx.RequestError as e:
        raise ProviderError(f"network: {type(e).__name__}") from e

    if resp.status_code == 404:
        raise ProviderError("not_found")
    if resp.status_code >= 400:
        raise ProviderError(f"http_{resp.status_code}")
    try:
        return resp.json()
    except ValueError as e:
        raise ProviderError("invalid_json") from e


def dedupe_records(
    records: Iterable[EvidenceRecord],
    key: Callable[[EvidenceRecord], str] | None = None,
) -> list[EvidenceRecord]:
    """Collapse case/diacritics-insensitive duplicates, keeping first-seen order."""

    key_fn = key or (lambda r: f"{r.field}:{normalize(r.value)}:{r.source_name}")
    seen: set[str] = set()
    out: list[EvidenceRecord] = []
    for record in records:
        k = key_fn(record)
        if k in seen:
            continue
        seen.add(k)
        out.append(record)
    return out


def elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))


def build_output(
    *,
    name: str,
    url: str,
    tier: ProviderTier,
    started: float,
    records: list[EvidenceRecord],
) -> ProviderOutput:
    deduped = dedupe_records(records)
    return ProviderOutput(
        outcome=ProviderOutcome(
            name=name,
            url=url,
            tier=tier,
            latency_ms=elapsed_ms(started),
            ok=len(deduped) > 0,
            record_count=len(deduped),
        ),
        records=deduped,
    )


def first_dict(items: Any) -> dict[str, Any] | None:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None
