"""Recognition pass runner.

One *pass* is a call to the identification model with up to two attempts: retryable failures
(timeout, upstream error, network) are retried once, anything else aborts immediately. A
low-confidence or incomplete first pass triggers one refinement pass that sees the first
attribution as context. If the refinement fails, or names fewer of title and creator than the
first pass did, the first result stands.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence

from artlens.errors import JsonExtractionError, RecognitionError
from artlens.llm.client import ChatMessage, image_message
from artlens.logging import get_logger
from artlens.models.attribution import SubjectAttribution
from artlens.prompts import RECOGNITION_SYSTEM_PROMPT, RECOGNITION_USER_PROMPT, REFINEMENT_USER_TEMPLATE
from artlens.utils.json_extract import extract_json_object

logger = get_logger(__name__)

SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
DEFAULT_MEDIA_TYPE = "image/jpeg"


PassHook = Callable[[str, dict[str, Any]], None]


class CompletionClient(Protocol):
    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: str,
        timeout_s: float,
        max_tokens: int = ...,
        temperature: float = ...,
    ) -> str:
        """Return the assistant text or raise RecognitionError."""


def normalize_media_type(media_type: str | None) -> str:
    """Map a declared media type onto one the model accepts (JPEG by default)."""

    value = (media_type or "").strip().lower()
    if value == "image/jpg":
        return "image/jpeg"
    return value if value in SUPPORTED_MEDIA_TYPES else DEFAULT_MEDIA_TYPE


def parse_attribution(text: str) -> SubjectAttribution:
    """Parse and sanitize a model answer.

    Raises:
        RecognitionError: ``upstream_error`` when no JSON object can be recovered.
    """

    try:
        data = extract_json_object(text)
    except JsonExtractionError as e:
        raise RecognitionError("upstream_error", f"unparseable identification output ({e.reason})") from e
    return SubjectAttribution.model_validate(data)


@dataclass(frozen=True)
class RecognitionOutcome:
    """Accepted attribution and how many passes produced it."""

    attribution: SubjectAttribution
    passes: int
    refinement_error: RecognitionError | None = None


class RecognitionPassRunner:
    """Run recognition passes against the identification model."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        model: str,
        timeout_s: float = 30.0,
        max_tokens: int = 500,
        temperature: float = 0.2,
        max_attempts: int = 2,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_s = timeout_s
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._max_attempts = max(1, max_attempts)

    def _messages(self, image: bytes, media_type: str, context: SubjectAttribution | None) -> list[ChatMessage]:
        if context is None:
            prompt = RECOGNITION_USER_PROMPT
        else:
            first_pass = json.dumps(context.model_dump(), ensure_ascii=False, indent=2)
            prompt = REFINEMENT_USER_TEMPLATE.format(first_pass=first_pass)
        return [
            ChatMessage(role="system", content=RECOGNITION_SYSTEM_PROMPT),
            image_message(prompt, image, media_type),
        ]

    async def _attempt(self, messages: list[ChatMessage]) -> SubjectAttribution:
        try:
            text = await asyncio.wait_for(
                self._client.complete(
                    messages,
                    model=self._model,
                    timeout_s=self._timeout_s,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise RecognitionError(
                "timeout", f"identification model did not answer within {self._timeout_s:.0f}s"
            ) from e
        return parse_attribution(text)

    async def run_pass(
        self,
        image: bytes,
        media_type: str,
        *,
        context: SubjectAttribution | None = None,
    ) -> SubjectAttribution:
        """Run one pass (at most ``max_attempts`` sequential attempts)."""

        messages = self._messages(image, media_type, context)
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._attempt(messages)
            except RecognitionError as e:
                if not e.retryable or attempt >= self._max_attempts:
                    raise
                logger.warning(
                    "Recognition attempt failed, retrying",
                    extra={"attempt": attempt, "kind": e.kind, "error": e.message},
                )
        raise RecognitionError("upstream_error", "recognition attempts exhausted")  # pragma: no cover

    async def recognize(
        self,
        image: bytes,
        media_type: str,
        *,
        on_pass: PassHook | None = None,
    ) -> RecognitionOutcome:
        """Primary pass, optional refinement pass, then the unresolved check.

        Raises:
            RecognitionError: ``bad_request`` for empty input, the primary pass error after its
                attempts, or ``unresolved`` when neither title nor creator could be named.
        """

        if not image:
            raise RecognitionError("bad_request", "image is empty")
        media = normalize_media_type(media_type)

        first = await self.run_pass(image, media)
        outcome = RecognitionOutcome(attribution=first, passes=1)
        if on_pass is not None:
            on_pass("primary_pass", {"confidence": first.confidence, "needs_refinement": first.needs_refinement})

        if first.needs_refinement:
            logger.info(
                "Refining low-confidence recognition",
                extra={"confidence": first.confidence, "title_unknown": first.title_unknown},
            )
            try:
                second = await self.run_pass(image, media, context=first)
                if second.resolved_identity_fields < first.resolved_identity_fields:
                    logger.warning(
                        "Refinement pass lost identity fields; keeping first pass",
                        extra={
                            "first_resolved": first.resolved_identity_fields,
                            "second_resolved": second.resolved_identity_fields,
                        },
                    )
                else:
                    outcome = RecognitionOutcome(attribution=second, passes=2)
            except RecognitionError as e:
                logger.warning("Refinement pass failed; keeping first pass", extra={"kind": e.kind})
                outcome = RecognitionOutcome(attribution=first, passes=1, refinement_error=e)
            if on_pass is not None:
                on_pass(
                    "retry_pass",
                    {
                        "ok": outcome.refinement_error is None,
                        "kept_first": outcome.passes == 1,
                        "confidence": outcome.attribution.confidence,
                        "error": outcome.refinement_error.kind if outcome.refinement_error else None,
                    },
                )

        if outcome.attribution.fully_unresolved:
            raise RecognitionError("unresolved", "could not identify the painting; try a closer photo without glare")
        return outcome
