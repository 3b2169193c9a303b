from __future__ import annotations

import random

import pytest

from hostile.core.engine.clock import ManualClock
from hostile.core.errors import InvalidAction
from hostile.simulations.captcha_eternal import (
    BASE_TIME_LIMIT_MS,
    GRID_SIZE,
    REQUIRED_ROUNDS,
    CaptchaEternal,
    Cell,
    score_selection,
)


def _sim(seed: int = 3) -> tuple[CaptchaEternal, ManualClock]:
    clock = ManualClock(now_ms=10_000)
    return CaptchaEternal(rng=random.Random(seed), clock=clock), clock


def _indices(sim: CaptchaEternal, *kinds: str) -> list[int]:
    return [i for i, cell in enumerate(sim.round.grid) if cell.kind in kinds]


def test_rounds_have_a_full_grid_with_correct_mix() -> None:
    for seed in range(10):
        sim, _ = _sim(seed)
        kinds = [c.kind for c in sim.round.grid]

        assert len(kinds) == GRID_SIZE
        assert 2 <= kinds.count("definite") <= 3
        assert 1 <= kinds.count("ambiguous") <= 2
        assert sim.round.category in sim.round.prompt
        assert sim.round.time_limit_ms == BASE_TIME_LIMIT_MS


def test_same_seed_same_rounds() -> None:
    a, _ = _sim(42)
    b, _ = _sim(42)

    assert a.round == b.round


def test_correct_selection_passes_and_timer_shrinks() -> None:
    sim, clock = _sim()
    clock.advance(3_000)

    out = sim.verify(_indices(sim, "definite"))

    assert out.passed
    assert sim.rounds_completed == 1
    assert sim.round.time_limit_ms == BASE_TIME_LIMIT_MS - 3_000
    assert out.data["rounds_completed"] == 1


def test_picking_unrelated_cells_fails_and_reports_them() -> None:
    sim, clock = _sim()
    clock.advance(3_000)
    wrong = _indices(sim, "unrelated")[:2]

    out = sim.verify(_indices(sim, "definite") + wrong)

    assert out.result.failed_rule_ids == ("correct-selection",)
    assert out.messages == ("Please try again. Some selections were incorrect.",)
    assert out.data["wrong"] == wrong
    assert sim.rounds_failed == 1


def test_timeout_fails() -> None:
    sim, clock = _sim()
    clock.advance(BASE_TIME_LIMIT_MS + 1)

    out = sim.verify(_indices(sim, "definite"))

    assert "not-too-slow" in out.result.failed_rule_ids


def test_answering_too_fast_is_flagged_after_two_attempts() -> None:
    sim, clock = _sim()
    for _ in range(2):
        sim.new_challenge()

    out = sim.verify(_indices(sim, "definite"))

    assert out.result.failed_rule_ids == ("not-too-fast",)
    assert sim.engine.get_rule("not-too-fast").hidden is True


def test_ambiguous_cells_required_from_round_three() -> None:
    sim, clock = _sim()
    for _ in range(3):
        clock.advance(3_000)
        assert sim.verify(_indices(sim, "definite")).passed

    clock.advance(3_000)
    out = sim.verify(_indices(sim, "definite"))

    assert out.result.failed_rule_ids == ("include-ambiguous",)
    assert out.messages == ("Your selection appears incomplete. Please review all images carefully.",)


def test_five_clean_rounds_finish_the_game() -> None:
    sim, clock = _sim()

    out = None
    for _ in range(REQUIRED_ROUNDS):
        clock.advance(3_000)
        out = sim.verify(_indices(sim, "definite", "ambiguous"))

    assert out is not None and out.finished
    assert sim.finished
    assert sim.engine.attempt_number == REQUIRED_ROUNDS
    assert sim.engine.get_stats().total_violations == 0


def test_new_challenge_costs_an_attempt_without_evaluating() -> None:
    sim, _ = _sim()

    out = sim.new_challenge()

    assert out.result is None
    assert not out.passed
    assert sim.engine.attempt_number == 1
    assert sim.engine.history == ()


def test_out_of_range_selection_rejected() -> None:
    sim, _ = _sim()

    with pytest.raises(InvalidAction):
        sim.verify([GRID_SIZE])
    with pytest.raises(InvalidAction):
        sim.act({"action": "verify", "selected": "nope"})

    assert sim.engine.attempt_number == 0


def test_reset_restores_round_one() -> None:
    sim, clock = _sim()
    clock.advance(3_000)
    sim.verify(_indices(sim, "definite"))

    sim.reset()

    assert sim.rounds_completed == 0
    assert sim.engine.attempt_number == 0
    assert sim.round.time_limit_ms == BASE_TIME_LIMIT_MS


def test_score_selection() -> None:
    grid = (Cell("a", "definite"), Cell("b", "definite"), Cell("c", "ambiguous"), Cell("d", "unrelated"))

    assert score_selection(grid, {0, 1}) == {
        "selection_correct": True,
        "ambiguous_selected": False,
        "selected_count": 2,
    }
    assert score_selection(grid, {0, 1, 2})["ambiguous_selected"] is True
    assert score_selection(grid, {0})["selection_correct"] is False
    assert score_selection(grid, {0, 1, 3})["selection_correct"] is False
