"""Facts draft generation.

A second, smaller model call that proposes enrichment facts for an already identified
subject. Its output is untrusted and only ever reaches a response through the validator.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from artlens.errors import JsonExtractionError, RecognitionError
from artlens.llm.client import ChatMessage
from artlens.logging import get_logger
from artlens.models.attribution import SubjectAttribution
from artlens.models.evidence import FactsDraft
from artlens.prompts import FACTS_DRAFT_SYSTEM_PROMPT, FACTS_DRAFT_USER_TEMPLATE
from artlens.recognition.runner import CompletionClient
from artlens.utils.json_extract import extract_json_object

logger = get_logger(__name__)


def parse_facts_draft(text: str) -> FactsDraft:
    data = extract_json_object(text)
    raw_facts = data.get("facts")
    facts = [f.strip() for f in raw_facts if isinstance(f, str) and f.strip()] if isinstance(raw_facts, list) else []
    addon = data.get("summary_addon", data.get("summaryAddon", ""))
    return FactsDraft(facts=facts, summary_addon=addon.strip() if isinstance(addon, str) else "")


@dataclass
class FactsDraftGenerator:
    """Ask the model for candidate facts about ``subject``."""

    client: CompletionClient
    model: str
    max_tokens: int = 400
    temperature: float = 0.3

    async def generate(self, subject: SubjectAttribution, *, max_facts: int, timeout_ms: float) -> FactsDraft | None:
        """Return a draft, or ``None`` if the call fails or times out."""

        if timeout_ms <= 0:
            return None
        messages = [
            ChatMessage(role="system", content=FACTS_DRAFT_SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=FACTS_DRAFT_USER_TEMPLATE.format(max_facts=max_facts, **subject.model_dump()),
            ),
        ]
        timeout_s = timeout_ms / 1000.0
        try:
            raw = await asyncio.wait_for(
                self.client.complete(
                    messages,
                    model=self.model,
                    timeout_s=timeout_s,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                timeout=timeout_s,
            )
            return parse_facts_draft(raw)
        except asyncio.TimeoutError:
            logger.info("Facts draft timed out", extra={"timeout_ms": int(timeout_ms)})
        except RecognitionError as e:
            logger.info("Facts draft failed", extra={"kind": e.kind})
        except JsonExtractionError as e:
            logger.info("Facts draft unparseable", extra={"reason": e.reason})
        return None
