from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Mapping

if TYPE_CHECKING:
    from hostile.core.rules.rule import Rule

RuleStatus = Literal["inactive", "dormant", "live"]


@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """
    One evaluate() call, appended to the engine history whether it passed or not.
    """

    attempt_number: int
    timestamp: int
    state: Mapping[str, Any]
    passed: bool
    failed_rule_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """
    What a predicate sees besides the state.

    - attempt_number: engine attempt counter during this evaluation
    - elapsed_time: ms since engine start / last reset
    - history: snapshot of previous evaluations (read-only)
    """

    attempt_number: int
    elapsed_time: int
    history: tuple[HistoryRecord, ...] = ()


@dataclass(frozen=True, slots=True)
class ViolationSnapshot:
    """
    Captured on failure only. state is a deep copy, context a shallow one.
    """

    timestamp: int
    state: dict[str, Any]
    context: EvaluationContext


@dataclass(frozen=True, slots=True)
class RuleResult:
    passed: bool
    rule: "Rule"
    message: str | None = None


@dataclass(slots=True)
class EvaluationResult:
    """
    Aggregate of a single engine evaluation.

    failures and messages preserve rule registration order.
    """

    passed: bool = True
    failures: list["Rule"] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    all_results: list[RuleResult] = field(default_factory=list)

    @property
    def failed_rule_ids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self.failures)

    def add(self, result: RuleResult) -> None:
        self.all_results.append(result)
        if result.passed:
            return
        self.passed = False
        self.failures.append(result.rule)
        if result.message is not None:
            self.messages.append(result.message)


@dataclass(frozen=True, slots=True)
class RuleExplanation:
    id: str
    name: str
    description: str
    violations: int
    hidden: bool


@dataclass(frozen=True, slots=True)
class ViolationSummaryEntry:
    rule: str
    violations: int
    description: str
    was_hidden: bool


@dataclass(frozen=True, slots=True)
class SessionStats:
    game_name: str
    attempts: int
    time_spent: int
    time_spent_formatted: str
    total_violations: int
    rules_discovered: int
    total_rules: int
