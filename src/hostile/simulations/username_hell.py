from __future__ import annotations

import random
import re
from typing import Any, Literal, Mapping, Optional

import structlog
from pydantic import BaseModel, Field

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.engine.engine import RuleEngine
from hostile.core.rules.rule import Rule
from hostile.messages.corpus import MessageCorpus, corporate_speak
from hostile.simulations.base import Outcome, parse_action

log = structlog.get_logger()

ALWAYS_TAKEN: frozenset[str] = frozenset({"admin", "user", "test", "guest", "root", "system"})
SUGGESTION_SUFFIXES: tuple[str, ...] = (
    "_2024", "_official", "_real", "123", "_x", "_gaming",
    "_pro", "_thereal", "69", "420", "_fan", "_lover",
)

RATE_WINDOW_MS = 60_000
MAX_CHECKS_PER_WINDOW = 5

# Suggestions at these positions are pre-marked as taken.
BAD_SUGGESTIONS = 2


class UsernameAction(BaseModel):
    action: Literal["check", "claim"] = "check"
    username: str = Field(default="", max_length=128)


def username_rules() -> list[Rule]:
    def name(s: Mapping[str, Any]) -> str:
        return s.get("username") or ""

    rules = [
        Rule(
            "length-min",
            "Minimum Length",
            "Username must be at least 3 characters.",
            lambda s, c: len(name(s)) >= 3,
            message="Username is too short.",
        ),
        Rule(
            "length-max",
            "Maximum Length",
            "Username must be no more than 20 characters.",
            lambda s, c: len(name(s)) <= 20,
            message="Username is too long.",
        ),
        Rule(
            "alphanumeric",
            "Character Restriction",
            "Username can only contain letters, numbers, and underscores.",
            lambda s, c: re.fullmatch(r"[a-zA-Z0-9_]+", name(s)) is not None,
            message="Username contains invalid characters.",
        ),
        Rule(
            "starts-letter",
            "Initial Character",
            "Username must start with a letter.",
            lambda s, c: re.match(r"[a-zA-Z]", name(s)) is not None,
            hidden=True,
            activates_after=3,
            message="Username format is not acceptable.",
        ),
        Rule(
            "no-consecutive-underscores",
            "Underscore Restriction",
            "Username cannot contain consecutive underscores.",
            lambda s, c: "__" not in name(s),
            hidden=True,
            activates_after=4,
            message="Username contains a restricted pattern.",
        ),
        Rule(
            "availability",
            "Availability Check",
            "Username must be available.",
            lambda s, c: s.get("is_available") is True,
            message="This username is not available.",
        ),
        Rule(
            "rate-limit",
            "Rate Limiting",
            "Cannot check too many usernames too quickly.",
            lambda s, c: s.get("checks_this_minute", 0) <= MAX_CHECKS_PER_WINDOW,
            hidden=True,
            message="Too many requests. Please wait.",
        ),
    ]
    return rules


class UsernameHell:
    """
    Pick a username. Every name is taken until enough names have been tried.

    "check" validates the name (availability bypassed), then rolls availability.
    "claim" evaluates again with the rolled availability; passing ends the game.
    """

    name = "username_hell"
    title = "Username Hell"

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
        self.engine = RuleEngine(self.title, clock=clock, corpus=self.corpus, rules=username_rules())

        # Names start becoming available after this many distinct attempts.
        self.magic_number = 7 + self._rng.randrange(5)
        self.attempted: list[str] = []

        self.current_username = ""
        self.is_available = False
        self.checks_this_minute = 0
        self._window_start: int | None = None
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def act(self, payload: Mapping[str, Any]) -> Outcome:
        req = parse_action(UsernameAction, payload)
        if req.action == "claim":
            return self.claim()
        return self.check(req.username)

    def reset(self) -> None:
        self.engine.reset()
        self.attempted.clear()
        self.current_username = ""
        self.is_available = False
        self.checks_this_minute = 0
        self._window_start = None
        self._finished = False

    def check(self, username: str) -> Outcome:
        self.current_username = username.strip()
        self.is_available = False
        self._count_check()

        result = self.engine.evaluate(
            {
                "username": self.current_username,
                "is_available": True,
                "checks_this_minute": self.checks_this_minute,
            }
        )
        if not result.passed and any(rid != "availability" for rid in result.failed_rule_ids):
            return Outcome(action="check", result=result, messages=tuple(result.messages))

        self.is_available = self.check_availability(self.current_username)
        if self.current_username not in self.attempted:
            self.attempted.append(self.current_username)

        data: dict[str, Any] = {"available": self.is_available, "checked": len(self.attempted)}
        if not self.is_available:
            data["suggestions"] = [
                {"username": s, "taken": i < BAD_SUGGESTIONS}
                for i, s in enumerate(self.suggestions(self.current_username))
            ]
        return Outcome(action="check", result=result, data=data)

    def claim(self) -> Outcome:
        result = self.engine.evaluate(
            {
                "username": self.current_username,
                "is_available": self.is_available,
                "checks_this_minute": self.checks_this_minute,
            }
        )
        if result.passed:
            self._finished = True
            log.info("username.claimed", tried=len(self.attempted), magic_number=self.magic_number)
            return Outcome(
                action="claim",
                result=result,
                finished=True,
                data={"username": self.current_username, "rejected": self.attempted[:-1]},
            )

        self.is_available = False
        return Outcome(
            action="claim",
            result=result,
            messages=("This username was just claimed by another user. Please try a different one.",),
            data={"available": False},
        )

    def check_availability(self, username: str) -> bool:
        if username.lower() in ALWAYS_TAKEN:
            return False
        if len(self.attempted) >= self.magic_number:
            return self._rng.random() > 0.5
        return False

    def suggestions(self, base: str, count: int = 5) -> list[str]:
        suffixes = SUGGESTION_SUFFIXES + (f"_user{self._rng.randrange(9999)}",)
        return [base + self._rng.choice(suffixes) for _ in range(count)]

    def _count_check(self) -> None:
        # Fixed window anchored at the first check in it.
        now = self._clock()
        if self._window_start is not None and now - self._window_start < RATE_WINDOW_MS:
            self.checks_this_minute += 1
        else:
            self.checks_this_minute = 1
            self._window_start = now
