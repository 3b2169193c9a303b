from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeAlias

# Milliseconds since the epoch (or any fixed origin for test clocks).
Clock: TypeAlias = Callable[[], int]


def system_clock_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(slots=True)
class ManualClock:
    """
    Deterministic clock for tests and replays.

    Time only moves when advance() is called.
    """

    now_ms: int = 0

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> int:
        if ms < 0:
            raise ValueError("clock cannot move backwards")
        self.now_ms += ms
        return self.now_ms
