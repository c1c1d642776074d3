"""Secondary knowledge providers: museum open-data catalogs.

Each catalog is searched with the free-text subject description and its top hit is mapped to
typed records. These are low-precision sources used for corroboration: the institution's own
name is reported as the location whenever the catalog returns an artwork.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx

from artlens.core.deadline import Deadline
from artlens.logging import get_logger
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import EvidenceConfidence, EvidenceField, EvidenceRecord, ProviderTier
from artlens.providers.base import (
    MIN_REQUEST_MS,
    ProviderError,
    ProviderOutput,
    build_output,
    fetch_json,
    first_dict,
)

logger = get_logger(__name__)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass
class _CatalogProvider:
    """Search-then-top-1 catalog lookup shared by the museum providers."""

    client: httpx.AsyncClient
    name: str = ""
    url: str = ""

    def search_url(self, query_text: str) -> str:
        raise NotImplementedError

    def artwork_url(self, artwork: dict[str, Any]) -> str:
        raise NotImplementedError

    def artwork_fields(self, artwork: dict[str, Any]) -> list[tuple[EvidenceField, str, EvidenceConfidence]]:
        raise NotImplementedError

    async def fetch(
        self,
        subject: SubjectAttribution,
        *,
        deadline: Deadline,
        timeout_ms: float,
        tier: ProviderTier = "secondary",
    ) -> ProviderOutput:
        """Search the catalog and map its top artwork to evidence records."""

        started = time.monotonic()
        budget = deadline.budget_ms(timeout_ms)
        query_text = subject.query_text()
        if budget < MIN_REQUEST_MS or not query_text:
            return build_output(name=self.name, url=self.url, tier=tier, started=started, records=[])

        records: list[EvidenceRecord] = []
        try:
            data = await fetch_json(self.client, self.search_url(query_text), budget)
        except ProviderError as e:
            logger.info("%s search failed: %s", self.name, e, extra={"provider": self.name})
            data = None

        artwork = first_dict(data.get("data")) if isinstance(data, dict) else None
        if artwork is not None:
            source_url = self.artwork_url(artwork)
            for field_name, value, confidence in self.artwork_fields(artwork):
                if value:
                    records.append(
                        EvidenceRecord(
                            field=field_name,
                            value=value,
                            source_name=self.name,
                            source_url=source_url,
                            confidence=confidence,
                        )
                    )
            records.append(
                EvidenceRecord(
                    field="location",
                    value=self.name,
                    source_name=self.name,
                    source_url=source_url,
                    confidence="low",
                )
            )

        return build_output(name=self.name, url=self.url, tier=tier, started=started, records=records)


@dataclass
class ArtInstituteChicagoProvider(_CatalogProvider):
    """Art Institute of Chicago public API."""

    name: str = "Art Institute of Chicago"
    url: str = "https://www.artic.edu"
    api_base: str = "https://api.artic.edu/api/v1"

    def search_url(self, query_text: str) -> str:
        return str(
            httpx.URL(
                f"{self.api_base}/artworks/search",
                params={
                    "q": query_text,
                    "limit": "1",
                    "fields": "id,title,artist_title,date_display,style_title,api_link",
                },
            )
        )

    def artwork_url(self, artwork: dict[str, Any]) -> str:
        artwork_id = artwork.get("id")
        return f"{self.url}/artworks/{artwork_id}" if artwork_id else self.url

    def artwork_fields(self, artwork: dict[str, Any]) -> list[tuple[EvidenceField, str, EvidenceConfidence]]:
        return [
            ("title", _text(artwork.get("title")), "medium"),
            ("creator", _text(artwork.get("artist_title")), "medium"),
            ("date", _text(artwork.get("date_display")), "low"),
            ("style", _text(artwork.get("style_title")), "low"),
        ]


@dataclass
class ClevelandMuseumProvider(_CatalogProvider):
    """Cleveland Museum of Art open access API."""

    name: str = "Cleveland Museum of Art"
    url: str = "https://www.clevelandart.org"
    api_base: str = "https://openaccess-api.clevelandart.org/api"

    def search_url(self, query_text: str) -> str:
        return str(httpx.URL(f"{self.api_base}/artworks/", params={"q": query_text, "limit": "1"}))

    def artwork_url(self, artwork: dict[str, Any]) -> str:
        artwork_id = artwork.get("id")
        return f"{self.url}/art/{artwork_id}" if artwork_id else self.url

    def artwork_fields(self, artwork: dict[str, Any]) -> list[tuple[EvidenceField, str, EvidenceConfidence]]:
        creator = first_dict(artwork.get("creators"))
        style = _text(artwork.get("technique")) or _text(artwork.get("culture"))
        return [
            ("title", _text(artwork.get("title")), "medium"),
            ("creator", _text(creator.get("description")) if creator else "", "medium"),
            ("date", _text(artwork.get("creation_date")), "low"),
            ("style", style, "low"),
        ]
