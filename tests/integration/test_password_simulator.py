from __future__ import annotations

import random

import pytest

from hostile.core.engine.clock import ManualClock
from hostile.core.errors import InvalidAction
from hostile.simulations.password_simulator import PasswordSimulator, mask, too_similar

GOOD = "Tr0ub4dor&x"


def _sim(seed: int = 1) -> PasswordSimulator:
    return PasswordSimulator(rng=random.Random(seed), clock=ManualClock())


def test_compliant_password_wins_on_first_try() -> None:
    sim = _sim()

    out = sim.submit(GOOD, GOOD)

    assert out.passed
    assert out.finished and sim.finished
    assert sim.engine.attempt_number == 1


def test_visible_failures_only_surface_two_messages() -> None:
    sim = _sim()

    out = sim.submit("abc", "abc")

    assert not out.passed
    assert out.result.failed_rule_ids == ("min-length", "uppercase", "number", "special")
    assert out.messages == (
        "Password must meet requirement: At least 8 characters",
        "Password must meet requirement: Contains uppercase letter",
    )
    assert sim.previous_passwords == ["abc"]


def test_common_word_rule_is_hidden_but_live_from_the_start() -> None:
    sim = _sim()

    out = sim.submit("Password1!", "Password1!")

    assert out.result.failed_rule_ids == ("no-common-words",)
    assert sim.engine.get_rule("no-common-words").hidden is True


def test_hidden_rules_join_as_attempts_grow() -> None:
    sim = _sim()
    for junk in ("a", "b", "c"):
        sim.submit(junk, junk)

    # attempt 3: exact-numbers is now live; starts-with-letter not yet
    out = sim.submit("Zebra123!x", "Zebra123!x")
    assert out.result.failed_rule_ids == ("exact-numbers",)

    # attempt 4: starts-with-letter joins
    out = sim.submit("1Zebra2!xq", "1Zebra2!xq")
    assert out.result.failed_rule_ids == ("starts-with-letter",)

    # attempt 5: no-end-number joins
    out = sim.submit("Quokka!x12", "Quokka!x12")
    assert out.result.failed_rule_ids == ("no-end-number",)


def test_resubmitting_a_similar_password_fails_uniqueness() -> None:
    sim = _sim()
    for junk in ("a", "b", GOOD[:-1] + "y"):
        sim.submit(junk, junk)

    out = sim.submit(GOOD, GOOD)

    assert "not-similar" in out.result.failed_rule_ids


def test_mismatch_clears_confirmation() -> None:
    sim = _sim()

    out = sim.submit(GOOD, GOOD + "?")

    assert out.result.failed_rule_ids == ("passwords-match",)
    assert out.data["confirm_cleared"] is True
    assert sim.confirm_cleared is True


def test_strength_meter_is_honest_then_lies() -> None:
    sim = _sim()
    honest = sim.strength(GOOD)
    assert honest.score == 5
    assert honest.displayed == 5
    assert honest.label == "Good"

    sim.submit("a", "a")
    sim.submit("b", "b")

    for _ in range(20):
        reading = sim.strength(GOOD)
        assert reading.score == 5
        assert reading.displayed in (4, 6)


def test_requirements_checklist() -> None:
    checks = {r["id"]: r["passed"] for r in _sim().requirements("abcdefgh")}

    assert checks == {
        "min-length": True,
        "max-length": True,
        "uppercase": False,
        "lowercase": True,
        "number": False,
        "special": False,
    }


def test_act_validates_payload() -> None:
    sim = _sim()

    with pytest.raises(InvalidAction):
        sim.act({"password": 123})

    out = sim.act({"password": GOOD, "confirm_password": GOOD})
    assert out.finished


def test_reset_starts_over_with_same_rules() -> None:
    sim = _sim()
    sim.submit("abc", "abc")
    sim.submit(GOOD, GOOD)

    sim.reset()

    assert not sim.finished
    assert sim.previous_passwords == []
    assert sim.engine.attempt_number == 0
    assert len(sim.engine.rules) == 13
    assert sim.engine.get_stats().total_violations == 0


def test_helpers() -> None:
    assert too_similar("Zebra12!xy", "Zebra12!xz")
    assert not too_similar("abcdef", "uvwxyz")
    assert not too_similar("", "")
    assert mask("Secret12") == "Se****12"
    assert mask("abc") == "***"
