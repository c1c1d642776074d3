"""Knowledge providers used as evidence sources."""

from __future__ import annotations

from artlens.providers.base import (
    Err,
    KnowledgeProvider,
    Ok,
    ProviderError,
    ProviderOutput,
    ProviderResult,
    create_http_client,
)
from artlens.providers.museums import ArtInstituteChicagoProvider, ClevelandMuseumProvider
from artlens.providers.wikimedia import WikimediaProvider

__all__ = [
    "ArtInstituteChicagoProvider",
    "ClevelandMuseumProvider",
    "Err",
    "KnowledgeProvider",
    "Ok",
    "ProviderError",
    "ProviderOutput",
    "ProviderResult",
    "WikimediaProvider",
    "create_http_client",
]
