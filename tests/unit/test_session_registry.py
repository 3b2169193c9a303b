from __future__ import annotations

import pytest
import structlog

from hostile.core.errors import UnknownSession, UnknownSimulation
from hostile.core.session.registry import SessionRegistry


def test_create_get_remove() -> None:
    reg = SessionRegistry(max_sessions=4)

    handle = reg.create(simulation="username_hell", seed=3)

    assert reg.get(handle.session_id) is handle
    assert handle.seed == 3
    assert handle.simulation.name == "username_hell"

    reg.remove(handle.session_id)
    with pytest.raises(UnknownSession):
        reg.get(handle.session_id)
    with pytest.raises(UnknownSession):
        reg.remove(handle.session_id)


def test_unknown_simulation_is_not_registered() -> None:
    reg = SessionRegistry(max_sessions=4)

    with pytest.raises(UnknownSimulation):
        reg.create(simulation="tax_return")

    assert len(reg) == 0


def test_oldest_session_is_evicted_past_the_limit() -> None:
    reg = SessionRegistry(max_sessions=2)

    first = reg.create(simulation="captcha_eternal")
    second = reg.create(simulation="captcha_eternal")
    third = reg.create(simulation="captcha_eternal")

    assert len(reg) == 2
    with pytest.raises(UnknownSession):
        reg.get(first.session_id)
    assert {h.session_id for h in reg.list()} == {second.session_id, third.session_id}


def test_run_binds_log_context_only_for_the_call() -> None:
    reg = SessionRegistry(max_sessions=2)
    handle = reg.create(simulation="password_simulator", seed=1)

    inside = handle.run(lambda sim: structlog.contextvars.get_contextvars())

    assert inside == {"session_id": handle.session_id, "simulation": "password_simulator"}
    assert structlog.contextvars.get_contextvars() == {}


def test_run_clears_log_context_when_the_call_raises() -> None:
    reg = SessionRegistry(max_sessions=2)
    handle = reg.create(simulation="password_simulator")

    def boom(sim) -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        handle.run(boom)

    assert structlog.contextvars.get_contextvars() == {}


def test_max_sessions_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionRegistry(max_sessions=0)
