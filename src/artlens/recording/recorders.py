"""Trace recorders.

The file recorder appends events to ``traces.jsonl`` for replay; the memory recorder keeps
them in a list, which is what tests and the CLI use.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from artlens.events import TraceEvent


class TraceRecorder(Protocol):
    def append(self, event: TraceEvent) -> None:
        """Record an event."""


@dataclass
class MemoryTraceRecorder:
    """In-memory recorder."""

    events: list[TraceEvent] = field(default_factory=list)

    def append(self, event: TraceEvent) -> None:
        self.events.append(event)

    def stages(self, request_id: str | None = None) -> list[str]:
        return [e.stage.value for e in self.events if request_id is None or e.request_id == request_id]


@dataclass
class FileTraceRecorder:
    """Append-only JSONL recorder."""

    path: Path

    def __post_init__(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, event: TraceEvent) -> None:
        """Append an event."""

        line = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


def iter_events(path: Path, request_id: str | None = None) -> list[TraceEvent]:
    """Load events from a JSONL file, optionally for one request."""

    events: list[TraceEvent] = []
    if not path.exists():
        return events
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        event = TraceEvent.model_validate_json(line)
        if request_id is None or event.request_id == request_id:
            events.append(event)
    return events
