from __future__ import annotations

import random
from typing import Callable, Optional

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.errors import UnknownSimulation
from hostile.messages.corpus import MessageCorpus
from hostile.simulations.base import Simulation
from hostile.simulations.captcha_eternal import CaptchaEternal
from hostile.simulations.consent_dialog import ConsentDialog
from hostile.simulations.password_simulator import PasswordSimulator
from hostile.simulations.unsubscribe_maze import UnsubscribeMaze
from hostile.simulations.username_hell import UsernameHell

SimulationFactory = Callable[..., Simulation]

SIMULATIONS: dict[str, SimulationFactory] = {
    PasswordSimulator.name: PasswordSimulator,
    UsernameHell.name: UsernameHell,
    CaptchaEternal.name: CaptchaEternal,
    ConsentDialog.name: ConsentDialog,
    UnsubscribeMaze.name: UnsubscribeMaze,
}


def available() -> list[str]:
    return sorted(SIMULATIONS)


def create_simulation(
    name: str,
    *,
    seed: Optional[int] = None,
    clock: Clock = system_clock_ms,
) -> Simulation:
    """
    Build a fresh simulation with its own engine.

    One seed drives both the simulation's randomness and its message corpus,
    so a seeded session is fully reproducible given the same inputs and clock.
    """
    factory = SIMULATIONS.get(name)
    if factory is None:
        raise UnknownSimulation(name)

    rng = random.Random(seed)
    corpus = MessageCorpus(rng=random.Random(rng.random()))
    return factory(rng=rng, clock=clock, corpus=corpus)
