from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, TypeAlias

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.rules.results import (
    EvaluationContext,
    RuleExplanation,
    RuleResult,
    RuleStatus,
    ViolationSnapshot,
)
from hostile.messages.corpus import MessageCorpus, corporate_speak


class Predicate(Protocol):
    """
    The substance of a rule.

    Must not mutate its arguments. Any randomness goes through an injected
    random.Random so tests can pin outcomes.
    """

    def __call__(self, state: Mapping[str, Any], context: EvaluationContext) -> bool:
        ...


MessageSource: TypeAlias = str | Callable[[], str]


@dataclass(slots=True, eq=False)
class Rule:
    """
    A named boolean constraint over engine state, gated by an attempt window.

    Window semantics (relative to context.attempt_number):
      - activates_after: inclusive lower bound
      - deactivates_after: exclusive upper bound
    Callers keep activates_after <= deactivates_after; nothing checks it.

    hidden is a disclosure flag only; evaluation never reads it.
    weight is recorded for reporting and is not used in aggregation.
    """

    id: str
    name: str
    description: str
    predicate: Predicate

    active: bool = True
    hidden: bool = False
    weight: float = 1
    activates_after: float = 0
    deactivates_after: float = math.inf
    message: MessageSource | None = None

    corpus: MessageCorpus | None = None
    clock: Clock = system_clock_ms

    violations: int = field(default=0, init=False)
    last_violation: ViolationSnapshot | None = field(default=None, init=False)

    def status(self, attempt_number: int) -> RuleStatus:
        if not self.active:
            return "inactive"
        if attempt_number < self.activates_after or attempt_number >= self.deactivates_after:
            return "dormant"
        return "live"

    def evaluate(self, state: Mapping[str, Any], context: EvaluationContext) -> RuleResult:
        if self.status(context.attempt_number) != "live":
            return RuleResult(passed=True, rule=self)

        passed = bool(self.predicate(state, context))
        if passed:
            return RuleResult(passed=True, rule=self)

        self.violations += 1
        self.last_violation = ViolationSnapshot(
            timestamp=self.clock(),
            state=copy.deepcopy(dict(state)),
            context=copy.copy(context),
        )
        return RuleResult(passed=False, rule=self, message=self.resolve_message())

    def resolve_message(self) -> str:
        if self.message is not None:
            return self.message() if callable(self.message) else self.message
        return (self.corpus or corporate_speak).error()

    def reset_violations(self) -> None:
        self.violations = 0
        self.last_violation = None

    def get_explanation(self) -> RuleExplanation:
        return RuleExplanation(
            id=self.id,
            name=self.name,
            description=self.description,
            violations=self.violations,
            hidden=self.hidden,
        )
