"""Error taxonomy for the recognition pipeline.

Only recognition failures are user-visible. Knowledge-provider failures degrade the evidence
bundle and never reach this module.
"""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal[
    "bad_request",
    "misconfigured_env",
    "billing",
    "timeout",
    "upstream_error",
    "network",
    "unresolved",
]

RETRYABLE_KINDS: frozenset[str] = frozenset({"timeout", "upstream_error", "network"})

HTTP_STATUS_BY_KIND: dict[str, int] = {
    "bad_request": 400,
    "misconfigured_env": 500,
    "billing": 402,
    "timeout": 504,
    "upstream_error": 502,
    "network": 502,
    "unresolved": 422,
}


class RecognitionError(RuntimeError):
    """A classified failure of the recognition pipeline."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind: ErrorKind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 500)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}

    def __repr__(self) -> str:
        return f"RecognitionError(kind={self.kind!r}, message={self.message!r})"


class JsonExtractionError(ValueError):
    """Raised when a JSON object cannot be recovered from model output."""

    def __init__(self, reason: Literal["no_json_found", "invalid_json"], detail: str = "") -> None:
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
