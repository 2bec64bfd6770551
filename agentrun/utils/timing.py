# agentrun/utils/timing.py
from __future__ import annotations

import math
import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Wall-clock timestamp in milliseconds, for event and record timestamps."""
    return int(time.time() * 1000)


def monotonic_ms() -> int:
    """Monotonic clock in milliseconds, for durations and deadlines."""
    return int(time.monotonic() * 1000)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Deadline:
    """A fixed point on the monotonic clock.

    `remaining_ms()` rounds up and never goes negative, so a timer armed with
    it fires no earlier than the deadline itself. A deadline built with
    `budget_ms=None` never expires.
    """

    def __init__(self, budget_ms: int | None):
        self.budget_ms = budget_ms
        self._started = time.monotonic()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def remaining_ms(self) -> int | None:
        if self.budget_ms is None:
            return None
        left = self.budget_ms / 1000.0 - (time.monotonic() - self._started)
        return max(0, math.ceil(left * 1000))

    def expired(self) -> bool:
        if self.budget_ms is None:
            return False
        return time.monotonic() - self._started >= self.budget_ms / 1000.0
