"""Primary knowledge provider: Wikipedia summaries linked to Wikidata entities.

Lookup flow:
    1. full-text search on each configured language edition (concurrently per query variant);
    2. page summary of the top hits, skipping disambiguation pages;
    3. best-scored candidate across languages wins, first variant with a candidate stops;
    4. if the page links a Wikidata entity: aliases, inception year, and labels of the
       creator, collection/location and movement.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from artlens.core.deadline import Deadline
from artlens.logging import get_logger
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import EvidenceConfidence, EvidenceField, EvidenceRecord, ProviderTier
from artlens.providers.base import MIN_REQUEST_MS, ProviderError, ProviderOutput, build_output, fetch_json
from artlens.utils.text import includes_ignore_case, is_unknown

logger = get_logger(__name__)

PROVIDER_NAME = "Wikimedia"
PROVIDER_URL = "https://www.wikipedia.org"
WIKIDATA_API = "https://www.wikidata.org/w/api.php"

# Entity follow-ups need a larger slice of the budget than a single search.
MIN_ENTITY_MS = 220
SEARCH_LIMIT = 4
MAX_ALIASES = 4
MAX_LINKED_IDS = 6

P_INCEPTION = "P571"
P_CREATOR = "P170"
P_COLLECTION = "P195"
P_LOCATION = "P276"
P_MOVEMENT = "P135"


@dataclass(frozen=True)
class _Candidate:
    language: str
    summary: dict[str, Any]
    page_url: str


def query_variants(subject: SubjectAttribution) -> list[str]:
    """Query texts in priority order, blanks and repeats removed."""

    variants = [subject.query_text()]
    if not subject.title_unknown:
        variants.append(subject.title)
        variants.append(f"{subject.title} painting")
    return list(dict.fromkeys(v.strip() for v in variants if v and v.strip()))


def score_candidate(summary: dict[str, Any], subject: SubjectAttribution) -> int:
    text = " ".join(
        str(summary.get(k) or "") for k in ("title", "description", "extract")
    ).strip()
    score = 0
    if includes_ignore_case(text, subject.title):
        score += 3
    if includes_ignore_case(text, subject.creator):
        score += 3
    if summary.get("wikibase_item"):
        score += 1
    if summary.get("type") != "disambiguation":
        score += 1
    return score


def dig(data: Any, *keys: str) -> Any:
    """Walk nested JSON objects; ``None`` as soon as a level is missing or not an object."""

    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_wikidata_year(value: Any) -> str | None:
    if not isinstance(value, dict):
        return None
    time_value = value.get("time")
    if not isinstance(time_value, str):
        return None
    # Wikidata times look like "+1889-01-01T00:00:00Z"
    digits = time_value.lstrip("+-").split("-", 1)[0]
    if len(digits) >= 4 and digits[-4:].isdigit():
        return digits[-4:]
    return None


def claim_value(claims: dict[str, Any], prop: str) -> Any:
    claim_list = claims.get(prop)
    if not isinstance(claim_list, list) or not claim_list:
        return None
    claim = claim_list[0]
    if not isinstance(claim, dict):
        return None
    mainsnak = claim.get("mainsnak")
    if not isinstance(mainsnak, dict):
        return None
    datavalue = mainsnak.get("datavalue")
    if not isinstance(datavalue, dict):
        return None
    return datavalue.get("value")


def entity_id(value: Any) -> str | None:
    if isinstance(value, dict) and isinstance(value.get("id"), str):
        return value["id"]
    return None


@dataclass
class WikimediaProvider:
    """Wikipedia + Wikidata evidence provider."""

    client: httpx.AsyncClient
    languages: tuple[str, ...] = ("en", "ru")
    name: str = PROVIDER_NAME
    url: str = PROVIDER_URL

    async def fetch(
        self,
        subject: SubjectAttribution,
        *,
        deadline: Deadline,
        timeout_ms: float,
        tier: ProviderTier = "primary",
    ) -> ProviderOutput:
        """Look up ``subject`` and return evidence records."""

        started = time.monotonic()
        records: list[EvidenceRecord] = []
        source_url = self.url

        candidate = await self._find_candidate(subject, deadline=deadline, timeout_ms=timeout_ms)
        if candidate is not None:
            source_url = candidate.page_url
            records.extend(self._summary_records(candidate, subject))

            item = candidate.summary.get("wikibase_item")
            if isinstance(item, str) and item:
                try:
                    records.extend(
                        await self._entity_records(item, deadline=deadline, timeout_ms=timeout_ms)
                    )
                except ProviderError as e:
                    logger.debug("Wikidata enrichment skipped: %s", e, extra={"item": item})

        output = build_output(
            name=self.name,
            url=source_url,
            tier=tier,
            started=started,
            records=records,
        )
        logger.info(
            "Wikimedia lookup done",
            extra={
                "provider": self.name,
                "language": candidate.language if candidate else None,
                "record_count": output.outcome.record_count,
                "latency_ms": output.outcome.latency_ms,
            },
        )
        return output

    async def _find_candidate(
        self,
        subject: SubjectAttribution,
        *,
        deadline: Deadline,
        timeout_ms: float,
    ) -> _Candidate | None:
        for query_text in query_variants(subject):
            attempts = await asyncio.gather(
                *(
                    self._search_language(lang, query_text, deadline=deadline, timeout_ms=timeout_ms)
                    for lang in self.languages
                )
            )
            candidates = [c for c in attempts if c is not None]
            if not candidates:
                continue
            candidates.sort(key=lambda c: score_candidate(c.summary, subject), reverse=True)
            return candidates[0]
        return None

    async def _search_language(
        self,
        language: str,
        query_text: str,
        *,
        deadline: Deadline,
        timeout_ms: float,
    ) -> _Candidate | None:
        budget = deadline.budget_ms(timeout_ms)
        if budget < MIN_REQUEST_MS:
            return None

        search_url = str(
            httpx.URL(
                f"https://{language}.wikipedia.org/w/api.php",
                params={
                    "action": "query",
                    "list": "search",
                    "format": "json",
                    "utf8": "1",
                    "srlimit": str(SEARCH_LIMIT),
                    "srsearch": query_text,
                },
            )
        )
        try:
            data = await fetch_json(self.client, search_url, budget)
        except ProviderError as e:
            logger.debug("Wikipedia search failed: %s", e, extra={"language": language})
            return None

        hits = dig(data, "query", "search")
        if not isinstance(hits, list):
            hits = []
        titles = [h["title"] for h in hits if isinstance(h, dict) and isinstance(h.get("title"), str) and h["title"]]

        for title in titles:
            summary_budget = deadline.budget_ms(timeout_ms)
            if summary_budget < MIN_REQUEST_MS:
                break
            summary_url = (
                f"https://{language}.wikipedia.org/api/rest_v1/page/summary/"
                f"{quote(title.replace(' ', '_'), safe='')}"
            )
            try:
                summary = await fetch_json(self.client, summary_url, summary_budget)
            except ProviderError:
                continue
            if not isinstance(summary, dict) or summary.get("type") == "disambiguation":
                continue
            page_url = dig(summary, "content_urls", "desktop", "page")
            if not isinstance(page_url, str) or not page_url:
                page_url = PROVIDER_URL
            return _Candidate(language=language, summary=summary, page_url=page_url)

        return None

    def _record(
        self,
        field_name: EvidenceField,
        value: str,
        source_url: str,
        confidence: EvidenceConfidence,
    ) -> EvidenceRecord:
        return EvidenceRecord(
            field=field_name,
            value=value,
            source_name=self.name,
            source_url=source_url,
            confidence=confidence,
        )

    def _summary_records(self, candidate: _Candidate, subject: SubjectAttribution) -> list[EvidenceRecord]:
        summary = candidate.summary
        url = candidate.page_url
        title = str(summary.get("title") or "").strip()
        description = str(summary.get("description") or "").strip()
        extract = str(summary.get("extract") or "").strip()
        combined = f"{description} {extract}".strip()

        out: list[EvidenceRecord] = []
        if title:
            out.append(self._record("title", title, url, "high"))
        if extract:
            out.append(self._record("summary", extract[:500], url, "medium"))
        if description:
            out.append(self._record("summary", description, url, "medium"))
        if includes_ignore_case(combined, subject.creator):
            out.append(self._record("creator", subject.creator, url, "high"))
        if includes_ignore_case(combined, subject.location):
            out.append(self._record("location", subject.location, url, "medium"))
        if includes_ignore_case(combined, subject.style):
            out.append(self._record("style", subject.style, url, "medium"))
        return out

    def _entities_url(self, ids: list[str], props: str) -> str:
        return str(
            httpx.URL(
                WIKIDATA_API,
                params={
                    "action": "wbgetentities",
                    "ids": "|".join(ids),
                    "format": "json",
                    "languages": "|".join(self.languages),
                    "props": props,
                },
            )
        )

    def _best_label(self, entity: Any) -> str | None:
        if not isinstance(entity, dict):
            return None
        for lang in self.languages:
            value = dig(entity, "labels", lang, "value")
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def _aliases(self, entity: dict[str, Any]) -> list[str]:
        values: list[str] = []
        for lang in self.languages:
            per_language = dig(entity, "aliases", lang)
            for alias in per_language if isinstance(per_language, list) else []:
                value = (alias or {}).get("value") if isinstance(alias, dict) else None
                if isinstance(value, str) and value.strip():
                    values.append(value.strip())
        return list(dict.fromkeys(values))[:MAX_ALIASES]

    async def _entity_records(self, item: str, *, deadline: Deadline, timeout_ms: float) -> list[EvidenceRecord]:
        budget = deadline.budget_ms(timeout_ms)
        if budget < MIN_ENTITY_MS:
            return []

        entities_url = self._entities_url([item], "labels|aliases|claims")
        data = await fetch_json(self.client, entities_url, budget)
        entity = dig(data, "entities", item)
        if not isinstance(entity, dict):
            return []
        claims = entity.get("claims")
        if not isinstance(claims, dict):
            claims = {}

        out: list[EvidenceRecord] = []
        for alias in self._aliases(entity):
            out.append(self._record("title", alias, entities_url, "medium"))

        year = parse_wikidata_year(claim_value(claims, P_INCEPTION))
        if year:
            out.append(self._record("date", year, entities_url, "high"))

        creator_id = entity_id(claim_value(claims, P_CREATOR))
        location_id = entity_id(claim_value(claims, P_COLLECTION)) or entity_id(claim_value(claims, P_LOCATION))
        style_id = entity_id(claim_value(claims, P_MOVEMENT))

        linked = [
            entity_id(claim_value(claims, prop))
            for prop in (P_CREATOR, P_COLLECTION, P_LOCATION, P_MOVEMENT)
        ]
        linked_ids = list(dict.fromkeys(i for i in linked if i))[:MAX_LINKED_IDS]

        labels_budget = deadline.budget_ms(timeout_ms)
        if not linked_ids or labels_budget < MIN_ENTITY_MS:
            return out

        labels_url = self._entities_url(linked_ids, "labels")
        try:
            labels_data = await fetch_json(self.client, labels_url, labels_budget)
        except ProviderError as e:
            logger.debug("Wikidata labels skipped: %s", e)
            return out
        labeled = dig(labels_data, "entities")
        if not isinstance(labeled, dict):
            labeled = {}

        for linked_id, field_name, confidence in (
            (creator_id, "creator", "high"),
            (location_id, "location", "medium"),
            (style_id, "style", "medium"),
        ):
            if not linked_id:
                continue
            label = self._best_label(labeled.get(linked_id))
            if label and not is_unknown(label):
                out.append(self._record(field_name, label, labels_url, confidence))  # type: ignore[arg-type]
        return out
