from __future__ import annotations

from artlens.prompts.recognition import (
    FACTS_DRAFT_SYSTEM_PROMPT,
    FACTS_DRAFT_USER_TEMPLATE,
    RECOGNITION_SYSTEM_PROMPT,
    RECOGNITION_USER_PROMPT,
    REFINEMENT_USER_TEMPLATE,
)

__all__ = [
    "FACTS_DRAFT_SYSTEM_PROMPT",
    "FACTS_DRAFT_USER_TEMPLATE",
    "RECOGNITION_SYSTEM_PROMPT",
    "RECOGNITION_USER_PROMPT",
    "REFINEMENT_USER_TEMPLATE",
]
