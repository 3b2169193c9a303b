from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from hostile.core.engine.engine import RuleEngine
from hostile.core.errors import InvalidAction
from hostile.core.rules.results import EvaluationResult
from hostile.messages.corpus import MessageCorpus

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class Outcome:
    """
    What a simulation reports back after one user action.

    result is None for actions that never reach the engine (e.g. a skipped round).
    messages is what the user gets to see, which may be a subset of result.messages.
    """

    action: str
    result: EvaluationResult | None
    messages: tuple[str, ...] = ()
    finished: bool = False
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.result is not None and self.result.passed


class Simulation(Protocol):
    """
    Simulation interface.

    Simulations:
    - own exactly one RuleEngine and register their rules on it at construction
    - own the message corpus their engine falls back to (also used for the report)
    - turn raw user input into engine state and call engine.evaluate()
    - decide what to do with the aggregate (error, next round, victory)
    """

    name: str
    engine: RuleEngine
    corpus: MessageCorpus

    @property
    def finished(self) -> bool:
        ...

    def act(self, payload: Mapping[str, Any]) -> Outcome:
        ...

    def reset(self) -> None:
        ...


def parse_action(model: type[M], payload: Mapping[str, Any]) -> M:
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidAction(str(exc)) from exc
