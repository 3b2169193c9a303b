from __future__ import annotations

import copy
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

import structlog

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.engine.state import EngineState
from hostile.core.events.bus import EVALUATE, Listener, ListenerBus
from hostile.core.rules.results import (
    EvaluationContext,
    EvaluationResult,
    HistoryRecord,
    RuleExplanation,
    SessionStats,
    ViolationSummaryEntry,
)
from hostile.core.rules.rule import Rule
from hostile.messages.corpus import MessageCorpus

log = structlog.get_logger()


def _frozen(values: Mapping[str, Any]) -> Mapping[str, Any]:
    # One deep copy per reader; writes through nested containers stay local.
    return MappingProxyType(copy.deepcopy(dict(values)))


def format_duration(ms: int) -> str:
    seconds = ms // 1000
    minutes = seconds // 60
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


class RuleEngine:
    """
    Deterministic rule engine for one simulation session.

    Every evaluate() call:
      - merges the input over the accumulated state
      - runs every rule in registration order against a read-only snapshot
      - appends exactly one history record and advances the attempt counter
      - notifies listeners synchronously, then returns the aggregate

    A predicate that raises aborts the call: no history record, no attempt
    advance, accumulated state untouched. The exception propagates.

    Not reentrant. At most one evaluate() may be in flight per instance, and
    listeners must not call evaluate() on the engine that notified them.
    """

    def __init__(
        self,
        game_name: str,
        *,
        clock: Clock = system_clock_ms,
        corpus: MessageCorpus | None = None,
        rules: Optional[Iterable[Rule]] = None,
    ) -> None:
        self.game_name = game_name
        self._clock = clock
        self._corpus = corpus
        self._rules: dict[str, Rule] = {}
        self._state = EngineState(start_time=clock())
        self._bus = ListenerBus()

        for rule in rules or ():
            self.add_rule(rule)

    # ---------------- Configuration ----------------

    def add_rule(self, rule: Rule) -> RuleEngine:
        # Violation timestamps and history timestamps come from the same clock.
        rule.clock = self._clock
        if rule.corpus is None and self._corpus is not None:
            rule.corpus = self._corpus
        self._rules[rule.id] = rule
        return self

    def remove_rule(self, rule_id: str) -> RuleEngine:
        self._rules.pop(rule_id, None)
        return self

    def activate_rule(self, rule_id: str) -> RuleEngine:
        rule = self._rules.get(rule_id)
        if rule is not None:
            rule.active = True
        return self

    def deactivate_rule(self, rule_id: str) -> RuleEngine:
        rule = self._rules.get(rule_id)
        if rule is not None:
            rule.active = False
        return self

    def set_state(self, partial: Mapping[str, Any]) -> RuleEngine:
        self._state.merge(partial)
        return self

    def get_rule(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    # ---------------- Read-only views ----------------

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules.values())

    @property
    def attempt_number(self) -> int:
        return self._state.attempt_number

    @property
    def start_time(self) -> int:
        return self._state.start_time

    @property
    def history(self) -> tuple[HistoryRecord, ...]:
        return tuple(self._state.history)

    @property
    def state(self) -> dict[str, Any]:
        return copy.deepcopy(self._state.values)

    def elapsed(self) -> int:
        return self._clock() - self._state.start_time

    # ---------------- Evaluation ----------------

    def evaluate(self, input_state: Optional[Mapping[str, Any]] = None) -> EvaluationResult:
        input_state = dict(input_state or {})
        full_state = {**self._state.values, **input_state}

        attempt = self._state.attempt_number
        context = EvaluationContext(
            attempt_number=attempt,
            elapsed_time=self.elapsed(),
            history=tuple(self._state.history),
        )

        result = EvaluationResult()
        try:
            for rule in tuple(self._rules.values()):
                result.add(rule.evaluate(_frozen(full_state), context))
        except Exception:
            log.exception("engine.predicate_failed", game=self.game_name, attempt=attempt)
            raise

        self._state.record(
            HistoryRecord(
                attempt_number=attempt,
                timestamp=self._clock(),
                state=_frozen(full_state),
                passed=result.passed,
                failed_rule_ids=result.failed_rule_ids,
            )
        )
        self._state.merge(input_state)
        self._state.next_attempt()

        log.debug(
            "engine.evaluated",
            game=self.game_name,
            attempt=attempt,
            passed=result.passed,
            failed=list(result.failed_rule_ids),
        )

        self.notify_listeners(EVALUATE, result)
        return result

    def skip_attempt(self) -> int:
        """
        Burn one attempt without evaluating (no history record, no listeners).
        """
        n = self._state.next_attempt()
        log.debug("engine.attempt_skipped", game=self.game_name, attempt=n - 1)
        return n

    # ---------------- Listeners ----------------

    def on_event(self, listener: Listener) -> RuleEngine:
        self._bus.subscribe(listener)
        return self

    def notify_listeners(self, event: str, payload: Any) -> None:
        self._bus.publish(event, payload)

    # ---------------- Reporting ----------------

    def get_violation_summary(self) -> list[ViolationSummaryEntry]:
        entries = [
            ViolationSummaryEntry(
                rule=r.name,
                violations=r.violations,
                description=r.description,
                was_hidden=r.hidden,
            )
            for r in self._rules.values()
            if r.violations > 0
        ]
        # sorted() is stable: ties keep registration order
        return sorted(entries, key=lambda e: e.violations, reverse=True)

    def get_full_rule_disclosure(self) -> list[RuleExplanation]:
        """
        Every rule, hidden ones included, in registration order.

        Meant for after the session ends. Showing this mid-session gives the
        hidden rules away; nothing stops a caller from doing so.
        """
        return [r.get_explanation() for r in self._rules.values()]

    def get_stats(self) -> SessionStats:
        spent = self.elapsed()
        rules = self._rules.values()
        return SessionStats(
            game_name=self.game_name,
            attempts=self._state.attempt_number,
            time_spent=spent,
            time_spent_formatted=format_duration(spent),
            total_violations=sum(r.violations for r in rules),
            rules_discovered=sum(1 for r in rules if r.violations > 0),
            total_rules=len(self._rules),
        )

    # ---------------- Lifecycle ----------------

    def reset(self) -> None:
        """
        Start the session over. Rule registration, active flags and windows stay.
        """
        self._state.clear(start_time=self._clock())
        for rule in self._rules.values():
            rule.reset_violations()
        log.info("engine.reset", game=self.game_name, rules=len(self._rules))
