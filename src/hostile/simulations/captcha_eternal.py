from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

import structlog
from pydantic import BaseModel, Field

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.engine.engine import RuleEngine
from hostile.core.errors import InvalidAction
from hostile.core.rules.rule import Rule
from hostile.messages.corpus import MessageCorpus, corporate_speak
from hostile.simulations.base import Outcome, parse_action

log = structlog.get_logger()

CellKind = Literal["definite", "ambiguous", "unrelated"]

CATEGORIES: dict[str, dict[CellKind, tuple[str, ...]]] = {
    "traffic lights": {
        "definite": ("🚦", "🚥"),
        "ambiguous": ("💡", "🔴", "🟡", "🟢", "🚨"),
        "unrelated": ("🚗", "🚙", "🏠", "🌳", "🚶", "☁️", "🏢", "🌆"),
    },
    "vehicles": {
        "definite": ("🚗", "🚙", "🚕", "🚌"),
        "ambiguous": ("🛵", "🚲", "🛴", "🏍️"),
        "unrelated": ("🏠", "🌳", "🚶", "🐕", "🚦", "☁️", "🏢", "🌆"),
    },
    "crosswalks": {
        "definite": ("🚶", "🚶‍♀️", "🚶‍♂️"),
        "ambiguous": ("🛤️", "➖", "🦓"),
        "unrelated": ("🚗", "🏠", "🌳", "🐕", "🚦", "☁️", "🏢", "🌆"),
    },
    "storefronts": {
        "definite": ("🏪", "🏬", "🏢"),
        "ambiguous": ("🏠", "🏛️", "🏗️", "🏨"),
        "unrelated": ("🚗", "🌳", "🐕", "🚦", "☁️", "🚶", "🌆", "🌲"),
    },
    "bicycles": {
        "definite": ("🚲", "🚴", "🚴‍♀️"),
        "ambiguous": ("🛵", "🛴", "🏍️", "🦽"),
        "unrelated": ("🚗", "🏠", "🌳", "🐕", "🚦", "☁️", "🏢", "🌆"),
    },
    "fire hydrants": {
        "definite": ("🧯", "🔥"),
        "ambiguous": ("🚒", "💧", "🔴"),
        "unrelated": ("🚗", "🏠", "🌳", "🐕", "🚦", "☁️", "🏢", "🌆"),
    },
}

PROMPTS: tuple[str, ...] = (
    "Select all squares with {category}",
    "Click on all {category}",
    "Identify all {category} in the image",
    "Select each square containing {category}",
)

GRID_SIZE = 9
REQUIRED_ROUNDS = 5
# The system gives up after this many attempts.
MAX_ATTEMPTS = 12
BASE_TIME_LIMIT_MS = 30_000
MIN_TIME_LIMIT_MS = 15_000
TIME_LIMIT_STEP_MS = 3_000
MIN_HUMAN_MS = 2_000


@dataclass(frozen=True, slots=True)
class Cell:
    emoji: str
    kind: CellKind


@dataclass(frozen=True, slots=True)
class Round:
    category: str
    prompt: str
    grid: tuple[Cell, ...]
    started_at: int
    time_limit_ms: int


class CaptchaAction(BaseModel):
    action: Literal["verify", "new_challenge"] = "verify"
    selected: list[int] = Field(default_factory=list, max_length=GRID_SIZE)


def captcha_rules() -> list[Rule]:
    rules = [
        Rule(
            "correct-selection",
            "Correct Selection",
            "User must select all correct items and no incorrect items.",
            lambda s, c: s.get("selection_correct") is True,
            message="Please try again. Some selections were incorrect.",
        ),
        Rule(
            "not-too-fast",
            "Human Speed Verification",
            "Selection must not be completed too quickly (appears automated).",
            lambda s, c: s.get("time_spent", 0) > MIN_HUMAN_MS,
            hidden=True,
            activates_after=2,
            message="Your response time suggests automated behavior. Please try again.",
        ),
        Rule(
            "not-too-slow",
            "Timeout Prevention",
            "Must complete before timer expires.",
            lambda s, c: s.get("time_remaining", 0) > 0,
            message="Time expired. Please complete the challenge faster.",
        ),
        Rule(
            "include-ambiguous",
            "Inclusive Selection Requirement",
            "Ambiguous items must also be selected after multiple rounds.",
            lambda s, c: s.get("rounds_completed", 0) < 3 or s.get("ambiguous_selected") is True,
            hidden=True,
            message="Your selection appears incomplete. Please review all images carefully.",
        ),
        Rule(
            "exact-count",
            "Exact Selection Count",
            "After 5 rounds, exactly 4 items must be selected regardless of content.",
            lambda s, c: s.get("rounds_completed", 0) < 5 or s.get("selected_count") == 4,
            hidden=True,
            message="Selection count does not match expected parameters.",
        ),
    ]
    return rules


def score_selection(grid: tuple[Cell, ...], selected: set[int]) -> dict[str, Any]:
    picked = [grid[i] for i in sorted(selected)]
    definite = sum(1 for c in grid if c.kind == "definite")
    return {
        "selection_correct": (
            sum(1 for c in picked if c.kind == "definite") == definite
            and not any(c.kind == "unrelated" for c in picked)
        ),
        "ambiguous_selected": any(c.kind == "ambiguous" for c in picked),
        "selected_count": len(picked),
    }


class CaptchaEternal:
    """
    Prove you are human, five times, against a shrinking timer.

    Rounds are generated from a seeded random source so a session can be
    replayed exactly. The requirements quietly tighten as rounds complete.
    """

    name = "captcha_eternal"
    title = "CAPTCHA Eternal"

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        clock: Clock = system_clock_ms,
        corpus: MessageCorpus | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self.corpus = corpus or corporate_speak
        self.engine = RuleEngine(self.title, clock=clock, corpus=self.corpus, rules=captcha_rules())

        self.rounds_completed = 0
        self.rounds_failed = 0
        self._finished = False
        self.round = self.new_round()

    @property
    def finished(self) -> bool:
        return self._finished

    def act(self, payload: Mapping[str, Any]) -> Outcome:
        req = parse_action(CaptchaAction, payload)
        if req.action == "new_challenge":
            return self.new_challenge()
        return self.verify(req.selected)

    def reset(self) -> None:
        self.engine.reset()
        self.rounds_completed = 0
        self.rounds_failed = 0
        self._finished = False
        self.new_round()

    def time_limit_ms(self) -> int:
        return BASE_TIME_LIMIT_MS - min(BASE_TIME_LIMIT_MS - MIN_TIME_LIMIT_MS, self.rounds_completed * TIME_LIMIT_STEP_MS)

    def new_round(self) -> Round:
        category = self._rng.choice(sorted(CATEGORIES))
        pools = CATEGORIES[category]

        cells = [Cell(e, "definite") for e in pools["definite"][: 2 + self._rng.randrange(2)]]
        cells += [Cell(e, "ambiguous") for e in pools["ambiguous"][: 1 + self._rng.randrange(2)]]

        seen = {c.emoji for c in cells}
        fill = [e for e in pools["unrelated"] if e not in seen]
        self._rng.shuffle(fill)
        cells += [Cell(e, "unrelated") for e in fill[: GRID_SIZE - len(cells)]]

        self._rng.shuffle(cells)
        self.round = Round(
            category=category,
            prompt=self._rng.choice(PROMPTS).format(category=category),
            grid=tuple(cells),
            started_at=self._clock(),
            time_limit_ms=self.time_limit_ms(),
        )
        return self.round

    def verify(self, selected: list[int]) -> Outcome:
        if any(i < 0 or i >= len(self.round.grid) for i in selected):
            raise InvalidAction(f"selection out of range: {selected}")

        spent = self._clock() - self.round.started_at
        state = score_selection(self.round.grid, set(selected))
        state.update(
            time_spent=spent,
            time_remaining=self.round.time_limit_ms - spent,
            rounds_completed=self.rounds_completed,
        )
        result = self.engine.evaluate(state)

        if result.passed:
            self.rounds_completed += 1
            if self.rounds_completed >= REQUIRED_ROUNDS or self.engine.attempt_number >= MAX_ATTEMPTS:
                self._finished = True
                log.info("captcha.completed", rounds=self.rounds_completed, attempts=self.engine.attempt_number)
                return Outcome(action="verify", result=result, finished=True, data=self._progress())
            self.new_round()
            return Outcome(action="verify", result=result, data=self._progress())

        self.rounds_failed += 1
        wrong = [i for i in selected if self.round.grid[i].kind == "unrelated"]
        self.new_round()
        return Outcome(
            action="verify",
            result=result,
            messages=tuple(result.messages[:1]),
            data={**self._progress(), "wrong": wrong},
        )

    def new_challenge(self) -> Outcome:
        # Asking for a different image still costs an attempt.
        self.engine.skip_attempt()
        self.new_round()
        return Outcome(action="new_challenge", result=None, data=self._progress())

    def _progress(self) -> dict[str, Any]:
        return {
            "rounds_completed": self.rounds_completed,
            "rounds_failed": self.rounds_failed,
            "required_rounds": REQUIRED_ROUNDS,
            "prompt": self.round.prompt,
            "grid": [c.emoji for c in self.round.grid],
            "time_limit_ms": self.round.time_limit_ms,
        }
