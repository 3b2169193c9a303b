from __future__ import annotations

import math
import random

from hostile.core.engine.clock import ManualClock
from hostile.core.rules.results import EvaluationContext
from hostile.core.rules.rule import Rule
from hostile.messages.corpus import ERRORS, MessageCorpus


class CountingPredicate:
    def __init__(self, outcome: bool) -> None:
        self.outcome = outcome
        self.calls = 0

    def __call__(self, state, context) -> bool:
        self.calls += 1
        return self.outcome


def _ctx(attempt: int = 0) -> EvaluationContext:
    return EvaluationContext(attempt_number=attempt, elapsed_time=0, history=())


def test_inactive_rule_passes_without_calling_predicate() -> None:
    pred = CountingPredicate(False)
    rule = Rule("r", "R", "always fails", pred, active=False)

    res = rule.evaluate({"x": 1}, _ctx())

    assert res.passed is True
    assert res.message is None
    assert pred.calls == 0
    assert rule.violations == 0
    assert rule.status(0) == "inactive"


def test_window_bounds_are_inclusive_lower_exclusive_upper() -> None:
    pred = CountingPredicate(False)
    rule = Rule("r", "R", "fails inside [2, 4)", pred, activates_after=2, deactivates_after=4)

    outcomes = [rule.evaluate({}, _ctx(a)).passed for a in range(6)]

    assert outcomes == [True, True, False, False, True, True]
    assert pred.calls == 2
    assert rule.violations == 2
    assert [rule.status(a) for a in (1, 2, 3, 4)] == ["dormant", "live", "live", "dormant"]


def test_defaults_make_rule_live_forever() -> None:
    rule = Rule("r", "R", "d", CountingPredicate(True))

    assert rule.activates_after == 0
    assert rule.deactivates_after == math.inf
    assert rule.weight == 1
    assert rule.status(10**9) == "live"


def test_failure_captures_independent_snapshot() -> None:
    clock = ManualClock(now_ms=1234)
    rule = Rule("r", "R", "d", lambda s, c: False, clock=clock)
    state = {"nested": {"items": [1, 2]}}
    ctx = _ctx(3)

    rule.evaluate(state, ctx)
    state["nested"]["items"].append(3)

    snap = rule.last_violation
    assert snap is not None
    assert snap.timestamp == 1234
    assert snap.state == {"nested": {"items": [1, 2]}}
    assert snap.state is not state
    assert snap.context.attempt_number == 3


def test_pass_leaves_last_violation_alone() -> None:
    outcomes = iter([False, True])
    rule = Rule("r", "R", "d", lambda s, c: next(outcomes))

    rule.evaluate({"a": 1}, _ctx())
    first = rule.last_violation
    rule.evaluate({"a": 2}, _ctx())

    assert rule.violations == 1
    assert rule.last_violation is first


def test_message_literal_callable_and_corpus_fallback() -> None:
    literal = Rule("a", "A", "d", lambda s, c: False, message="nope")
    dynamic = Rule("b", "B", "d", lambda s, c: False, message=lambda: "computed")
    corpus = MessageCorpus(rng=random.Random(7))
    fallback = Rule("c", "C", "d", lambda s, c: False, corpus=corpus)

    assert literal.evaluate({}, _ctx()).message == "nope"
    assert dynamic.evaluate({}, _ctx()).message == "computed"

    msg = fallback.evaluate({}, _ctx()).message
    assert msg in ERRORS
    assert msg == MessageCorpus(rng=random.Random(7)).error()


def test_passing_rule_has_no_message() -> None:
    rule = Rule("r", "R", "d", lambda s, c: True, message="never shown")
    assert rule.evaluate({}, _ctx()).message is None


def test_explanation_reflects_live_counts() -> None:
    rule = Rule("r", "Rule R", "desc", lambda s, c: False, hidden=True)

    before = rule.get_explanation()
    rule.evaluate({}, _ctx())
    rule.evaluate({}, _ctx())
    after = rule.get_explanation()

    assert before.violations == 0
    assert after.violations == 2
    assert (after.id, after.name, after.description, after.hidden) == ("r", "Rule R", "desc", True)


def test_truthy_predicate_results_are_coerced() -> None:
    rule = Rule("r", "R", "d", lambda s, c: s.get("items"))

    assert rule.evaluate({"items": [1]}, _ctx()).passed is True
    assert rule.evaluate({"items": []}, _ctx()).passed is False
