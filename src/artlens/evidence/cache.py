"""Short-lived cache of verification results per identified subject.

The cache is constructed once at process start and handed to the pipeline by reference.
Entries are keyed by the normalized ``title|creator`` of the subject; an expired entry reads
as a miss and stays in place until the next write for that key replaces it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from artlens.core.deadline import Clock
from artlens.logging import get_logger
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import VerificationResult
from artlens.utils.text import subject_key

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    result: VerificationResult
    expires_at: float


class ResultCache:
    """TTL cache of :class:`VerificationResult` values."""

    def __init__(self, ttl_ms: int, *, clock: Clock = time.monotonic) -> None:
        """Initialize the cache.

        Args:
            ttl_ms: Time to live in milliseconds; ``0`` disables caching.
            clock: Monotonic clock in seconds.
        """
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def key_for(subject: SubjectAttribution) -> str:
        return subject_key(subject.title, subject.creator)

    def get(self, key: str) -> VerificationResult | None:
        """Return the cached result for ``key`` unless missing or expired."""

        entry = self._entries.get(key)
        if entry is None or self._clock() > entry.expires_at:
            return None
        return entry.result.model_copy(deep=True)

    def put(self, key: str, result: VerificationResult) -> None:
        """Store ``result`` under ``key`` with a fresh TTL."""

        if self.ttl_ms <= 0:
            return
        self._entries[key] = CacheEntry(
            result=result.model_copy(deep=True),
            expires_at=self._clock() + self.ttl_ms / 1000.0,
        )
        logger.debug("Cached verification result", extra={"key": key, "status": result.status})

    def __len__(self) -> int:
        return len(self._entries)
