"""ArtLens: painting recognition with evidence-verified enrichment."""

from __future__ import annotations

__version__ = "0.1.0"
