"""Deadline arithmetic for nested time budgets.

All budgets are expressed in milliseconds against an injectable monotonic clock (seconds), so
the orchestration logic can be exercised deterministically in tests.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]


def monotonic_ms(clock: Clock = time.monotonic) -> float:
    return clock() * 1000.0


@dataclass(frozen=True)
class Deadline:
    """An absolute point in time on ``clock``, in milliseconds."""

    at_ms: float
    clock: Clock = field(default=time.monotonic, compare=False, repr=False)

    @classmethod
    def after(cls, budget_ms: float, *, clock: Clock = time.monotonic) -> "Deadline":
        return cls(at_ms=monotonic_ms(clock) + budget_ms, clock=clock)

    def now_ms(self) -> float:
        return monotonic_ms(self.clock)

    def remaining_ms(self) -> float:
        return max(0.0, self.at_ms - self.now_ms())

    def expired(self) -> bool:
        return self.now_ms() > self.at_ms

    def shifted(self, delta_ms: float) -> "Deadline":
        return Deadline(at_ms=self.at_ms + delta_ms, clock=self.clock)

    def earliest(self, other: "Deadline") -> "Deadline":
        return self if self.at_ms <= other.at_ms else other

    def budget_ms(self, cap_ms: float) -> float:
        """Remaining time, capped at ``cap_ms``; zero once expired."""

        return max(0.0, min(self.remaining_ms(), cap_ms))


async def run_with_timeout(awaitable: Awaitable[T], timeout_ms: float) -> T:
    """Await ``awaitable`` for at most ``timeout_ms``.

    Raises:
        asyncio.TimeoutError: When the budget elapses; the awaitable is cancelled.
    """

    return await asyncio.wait_for(awaitable, timeout=max(timeout_ms, 0.0) / 1000.0)
