from __future__ import annotations

import random

import pytest

from hostile.core.engine.clock import ManualClock
from hostile.core.errors import InvalidAction
from hostile.messages.corpus import MANIPULATIONS, MessageCorpus
from hostile.simulations.unsubscribe_maze import HESITATION_NOTICE, OFFER_ACCEPTED, UnsubscribeMaze


def _sim() -> UnsubscribeMaze:
    return UnsubscribeMaze(rng=random.Random(1), clock=ManualClock(), corpus=MessageCorpus(rng=random.Random(1)))


def _walk_to_final_step(sim: UnsubscribeMaze, reason: str = "found-alternative") -> None:
    sim.go_to_step(2)
    sim.select_reason(reason)
    sim.go_to_step(3)
    sim.go_to_step(4)


def test_straight_through_on_first_try() -> None:
    sim = _sim()
    _walk_to_final_step(sim)

    out = sim.cancel(confirmed=True)

    assert out.passed and out.finished
    assert out.data["reason_trap"] is False


def test_cancel_before_finishing_the_steps() -> None:
    out = _sim().cancel(confirmed=False)

    assert out.result.failed_rule_ids == ("completed-all-steps", "selected-reason", "confirmed-understanding")


def test_second_cancel_demands_hesitation_and_sends_user_back() -> None:
    sim = _sim()
    sim.cancel(confirmed=False)
    _walk_to_final_step(sim)

    out = sim.cancel(confirmed=True)

    assert out.result.failed_rule_ids == ("showed-hesitation",)
    assert out.messages == ("We need to verify your cancellation intent.",) + HESITATION_NOTICE
    assert sim.current_step == 3
    assert sim.times_reconsidered == 0

    kept = sim.keep()
    assert kept.result is None
    assert kept.messages[0] in MANIPULATIONS
    assert sim.clicked_keep == 1

    sim.go_to_step(4)
    assert sim.cancel(confirmed=True).finished


def test_going_back_twice_counts_as_hesitation() -> None:
    sim = _sim()
    sim.cancel(confirmed=False)
    _walk_to_final_step(sim)
    sim.go_to_step(2)
    sim.go_to_step(4)
    sim.go_to_step(3)
    sim.go_to_step(4)

    assert sim.times_reconsidered == 2
    assert sim.cancel(confirmed=True).passed


def test_accepting_the_offer_blocks_a_clean_exit() -> None:
    sim = _sim()

    out = sim.accept_offer()
    assert out.messages == OFFER_ACCEPTED
    assert sim.current_step == 1

    _walk_to_final_step(sim)
    res = sim.cancel(confirmed=True)
    assert res.result.failed_rule_ids == ("not-resubscribed",)
    assert sim.engine.get_rule("not-resubscribed").hidden is True

    sim.reset()
    _walk_to_final_step(sim)
    assert sim.cancel(confirmed=True).passed


def test_trap_reasons_answer_with_retention_pitch() -> None:
    sim = _sim()

    trap = sim.select_reason("temporary")
    plain = sim.select_reason("other")

    assert trap.messages == ("How about we pause your subscription instead?",)
    assert trap.data["trap"] is True
    assert plain.messages == ()
    assert plain.data["trap"] is False


def test_act_validates_payload() -> None:
    sim = _sim()

    with pytest.raises(InvalidAction):
        sim.act({"action": "select_reason", "reason": "spite"})
    with pytest.raises(InvalidAction):
        sim.act({"action": "go_to_step", "step": 5})
    with pytest.raises(InvalidAction):
        sim.act({"action": "flee"})

    assert sim.act({"action": "go_to_step", "step": 4}).data["step"] == 4
