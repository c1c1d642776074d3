"""Async OpenAI-compatible chat client for the identification model.

This wraps the `openai` Python SDK. SDK retries are disabled: the recognition pass runner owns
the retry policy, and every SDK failure is classified into a
:class:`~artlens.errors.RecognitionError`.
"""

from __future__ import annotations

import asyncio
import base64
import time
from dataclasses import dataclass
from typing import Any, Literal, Sequence

import httpx
import openai
from openai import AsyncOpenAI

from artlens.config import Settings
from artlens.errors import RecognitionError
from artlens.logging import get_logger

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]

_PLACEHOLDER_KEYS = {"", "sk-your-key-here", "changeme"}
_BILLING_MARKERS = ("insufficient_quota", "credit balance", "billing", "quota exceeded")


@dataclass(frozen=True)
class ChatMessage:
    """A chat message; content is text or a list of multimodal parts."""

    role: Role
    content: str | list[dict[str, Any]]


def image_message(prompt: str, image: bytes, media_type: str) -> ChatMessage:
    """User message carrying one image (as a data URL) plus instruction text."""

    encoded = base64.b64encode(image).decode("ascii")
    return ChatMessage(
        role="user",
        content=[
            {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{encoded}"}},
            {"type": "text", "text": prompt},
        ],
    )


def _is_billing(err: openai.APIStatusError) -> bool:
    code = str(getattr(err, "code", "") or "").lower()
    text = f"{code} {err.message}".lower()
    return err.status_code == 402 or any(m in text for m in _BILLING_MARKERS)


def classify_error(err: BaseException) -> RecognitionError:
    """Map an SDK or timeout exception onto the pipeline error taxonomy."""

    if isinstance(err, RecognitionError):
        return err
    if isinstance(err, (asyncio.TimeoutError, openai.APITimeoutError)):
        return RecognitionError("timeout", "identification model request timed out")
    if isinstance(err, openai.APIConnectionError):
        return RecognitionError("network", f"identification model unreachable: {err}")
    if isinstance(err, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return RecognitionError("misconfigured_env", f"identification model rejected credentials: {err.message}")
    if isinstance(err, openai.APIStatusError):
        status = err.status_code
        if _is_billing(err):
            return RecognitionError("billing", f"identification model quota exhausted: {err.message}")
        if status == 408:
            return RecognitionError("timeout", f"identification model timed out upstream: {err.message}")
        if status == 429 or status >= 500:
            return RecognitionError("upstream_error", f"identification model error {status}: {err.message}")
        return RecognitionError("bad_request", f"identification model refused request {status}: {err.message}")
    return RecognitionError("upstream_error", f"identification model error: {err}")


class VisionLLMClient:
    """Chat completions client used for recognition and facts drafts."""

    def __init__(self, settings: Settings, *, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client: AsyncOpenAI | None = None
        key = (settings.openai_api_key or "").strip()
        if key.lower() not in _PLACEHOLDER_KEYS:
            self._client = AsyncOpenAI(
                api_key=key,
                base_url=settings.openai_base_url,
                max_retries=0,  # retries are handled by the pass runner
                http_client=http_client,
            )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: str,
        timeout_s: float,
        max_tokens: int = 500,
        temperature: float = 0.2,
    ) -> str:
        """Generate a completion within ``timeout_s``.

        Returns:
            Assistant message content ("" if the model returned none).

        Raises:
            RecognitionError: Classified failure.
        """

        if self._client is None:
            raise RecognitionError(
                "misconfigured_env",
                "Missing ARTLENS_OPENAI_API_KEY. Set it in environment variables or a .env file.",
            )

        payload = [{"role": m.role, "content": m.content} for m in messages]
        started = time.monotonic()
        try:
            resp = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model,
                    messages=payload,  # type: ignore[arg-type]
                    max_tokens=max_tokens,
                    temperature=temperature,
                    timeout=timeout_s,
                ),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, openai.OpenAIError) as e:
            classified = classify_error(e)
            logger.warning(
                "LLM request failed",
                extra={
                    "model": model,
                    "kind": classified.kind,
                    "latency_ms": int((time.monotonic() - started) * 1000),
                },
            )
            raise classified from e

        logger.debug(
            "LLM completion successful",
            extra={
                "model": model,
                "latency_ms": int((time.monotonic() - started) * 1000),
                "tokens": resp.usage.total_tokens if resp.usage else None,
            },
        )
        if not resp.choices:
            return ""
        choice = resp.choices[0]
        if not choice.message or choice.message.content is None:
            return ""
        return choice.message.content
