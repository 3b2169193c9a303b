from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping

from hostile.core.rules.results import HistoryRecord


@dataclass(slots=True)
class EngineState:
    """
    Session state owned exclusively by one RuleEngine.

    - attempt_number: +1 per completed evaluation (never decremented except by reset)
    - start_time: ms timestamp of construction / last reset
    - values: flat key/value blob, accumulates across evaluations
    - history: append-only evaluation log

    Guardrails:
      - history only grows through record()
      - values only change through merge() / clear()
    """

    start_time: int
    attempt_number: int = 0
    values: dict[str, Any] = field(default_factory=dict)
    history: list[HistoryRecord] = field(default_factory=list)

    def merge(self, partial: Mapping[str, Any]) -> None:
        # Stored values never alias caller-owned objects.
        self.values.update(copy.deepcopy(dict(partial)))

    def record(self, rec: HistoryRecord) -> None:
        if rec.attempt_number != self.attempt_number:
            raise RuntimeError(
                f"history out of order: record={rec.attempt_number} expected={self.attempt_number}"
            )
        self.history.append(rec)

    def next_attempt(self) -> int:
        self.attempt_number += 1
        return self.attempt_number

    def clear(self, *, start_time: int) -> None:
        self.start_time = start_time
        self.attempt_number = 0
        self.values = {}
        self.history = []
