"""Recording utilities for trace events."""

from __future__ import annotations

from artlens.recording.recorders import FileTraceRecorder, MemoryTraceRecorder, TraceRecorder, iter_events

__all__ = ["FileTraceRecorder", "MemoryTraceRecorder", "TraceRecorder", "iter_events"]
