from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import structlog
from pydantic import BaseModel, Field

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.engine.engine import RuleEngine
from hostile.core.events.bus import EVALUATE
from hostile.core.rules.results import EvaluationContext, EvaluationResult
from hostile.core.rules.rule import Rule
from hostile.messages.corpus import MessageCorpus, corporate_speak
from hostile.simulations.base import Outcome, parse_action

log = structlog.get_logger()

SPECIAL_CHARS = re.compile(r"[!@#$%^&*]")
COMMON_WORDS: tuple[str, ...] = ("password", "admin", "user", "login", "welcome", "hello", "test")

# (id, text, check) -- shown to the user up front
VISIBLE_REQUIREMENTS: tuple[tuple[str, str, Callable[[str], bool]], ...] = (
    ("min-length", "At least 8 characters", lambda p: len(p) >= 8),
    ("max-length", "No more than 20 characters", lambda p: len(p) <= 20),
    ("uppercase", "Contains uppercase letter", lambda p: re.search(r"[A-Z]", p) is not None),
    ("lowercase", "Contains lowercase letter", lambda p: re.search(r"[a-z]", p) is not None),
    ("number", "Contains a number", lambda p: re.search(r"\d", p) is not None),
    ("special", "Contains special character (!@#$%^&*)", lambda p: SPECIAL_CHARS.search(p) is not None),
)

STRENGTH_LABELS: tuple[str, ...] = ("Weak", "Weak", "Fair", "Fair", "Good", "Good", "Strong")

# Only this many failure messages are surfaced per attempt.
MAX_DISPLAYED_MESSAGES = 2


class SubmitPassword(BaseModel):
    password: str = Field(default="", max_length=256)
    confirm_password: str = Field(default="", max_length=256)


@dataclass(frozen=True, slots=True)
class StrengthReading:
    score: int
    displayed: int

    @property
    def label(self) -> str:
        return STRENGTH_LABELS[self.displayed]


def _password(state: Mapping[str, Any]) -> str:
    return state.get("password") or ""


def too_similar(current: str, previous: str) -> bool:
    """
    More than half of the positions match.
    """
    longest = max(len(current), len(previous))
    if longest == 0:
        return False
    matches = sum(1 for a, b in zip(current, previous) if a == b)
    return matches / longest > 0.5


def _exactly_two_digits(s: Mapping[str, Any], c: EvaluationContext) -> bool:
    return len(re.findall(r"\d", _password(s))) == 2


def _no_common_words(s: Mapping[str, Any], c: EvaluationContext) -> bool:
    lower = _password(s).lower()
    return not any(word in lower for word in COMMON_WORDS)


def _not_similar(s: Mapping[str, Any], c: EvaluationContext) -> bool:
    current = _password(s)
    return not any(too_similar(current, prev) for prev in s.get("previous_passwords", ()))


def password_rules() -> list[Rule]:
    rules: list[Rule] = []

    for rid, text, check in VISIBLE_REQUIREMENTS:
        rules.append(
            Rule(
                rid,
                text,
                text,
                lambda s, c, check=check: check(_password(s)),
                message=f"Password must meet requirement: {text}",
            )
        )

    rules += [
        Rule(
            "no-repeats",
            "No Consecutive Repeats",
            "Password cannot contain the same character three times in a row.",
            lambda s, c: re.search(r"(.)\1\1", _password(s)) is None,
            hidden=True,
            activates_after=2,
            message="Password contains an invalid character pattern.",
        ),
        Rule(
            "exact-numbers",
            "Exact Number Requirement",
            "Password must contain exactly 2 digits.",
            _exactly_two_digits,
            hidden=True,
            activates_after=3,
            message="The numeric composition of your password is not optimal.",
        ),
        Rule(
            "no-common-words",
            "Common Word Restriction",
            'Password cannot contain common words like "password", "admin", "user", "login".',
            _no_common_words,
            hidden=True,
            message="Password contains restricted character sequences.",
        ),
        Rule(
            "starts-with-letter",
            "Initial Character Requirement",
            "Password must begin with a letter.",
            lambda s, c: re.match(r"[a-zA-Z]", _password(s)) is not None,
            hidden=True,
            activates_after=4,
            message="Password format does not meet security guidelines.",
        ),
        Rule(
            "no-end-number",
            "Terminal Character Restriction",
            "Password cannot end with a digit.",
            lambda s, c: re.search(r"\d$", _password(s)) is None,
            hidden=True,
            activates_after=5,
            message="The structure of your password has been flagged by our security system.",
        ),
        Rule(
            "not-similar",
            "Uniqueness Requirement",
            "Password must be significantly different from previous attempts.",
            _not_similar,
            hidden=True,
            activates_after=3,
            message="This password is too similar to a previous attempt.",
        ),
        Rule(
            "passwords-match",
            "Confirmation Match",
            "Password and confirmation must match.",
            lambda s, c: s.get("password") == s.get("confirm_password"),
            message="Passwords do not match. Please re-enter.",
        ),
    ]
    return rules


class PasswordSimulator:
    """
    Create a password. The requirements list is honest; it is just not complete.

    Hidden rules switch on as the attempt count grows, the strength meter lies
    from the third attempt on, and failed attempts may wipe the confirmation field.
    """

    name = "password_simulator"
    title = "Password Simulator"

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        clock: Clock = system_clock_ms,
        corpus: MessageCorpus | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self.corpus = corpus or corporate_speak
        self.engine = RuleEngine(self.title, clock=clock, corpus=self.corpus, rules=password_rules())
        self.previous_passwords: list[str] = []
        self.confirm_cleared = False
        self._finished = False

        self.engine.on_event(self._on_engine_event)

    @property
    def finished(self) -> bool:
        return self._finished

    def act(self, payload: Mapping[str, Any]) -> Outcome:
        req = parse_action(SubmitPassword, payload)
        return self.submit(req.password, req.confirm_password)

    def reset(self) -> None:
        self.engine.reset()
        self.previous_passwords.clear()
        self.confirm_cleared = False
        self._finished = False

    def submit(self, password: str, confirm_password: str) -> Outcome:
        self.confirm_cleared = False

        result = self.engine.evaluate(
            {
                "password": password,
                "confirm_password": confirm_password,
                "previous_passwords": tuple(self.previous_passwords),
            }
        )

        if password and password not in self.previous_passwords:
            self.previous_passwords.append(password)

        if result.passed:
            self._finished = True
            log.info("password.accepted", attempts=self.engine.attempt_number)
            return Outcome(action="submit", result=result, finished=True)

        if "passwords-match" in result.failed_rule_ids:
            self.confirm_cleared = True

        return Outcome(
            action="submit",
            result=result,
            messages=tuple(result.messages[:MAX_DISPLAYED_MESSAGES]),
            data={
                "confirm_cleared": self.confirm_cleared,
                "previous_passwords": [mask(p) for p in self.previous_passwords],
                "requirements": self.requirements(password),
                "strength": self.strength(password).label if password else None,
            },
        )

    def requirements(self, password: str) -> list[dict[str, Any]]:
        return [
            {"id": rid, "text": text, "passed": check(password)}
            for rid, text, check in VISIBLE_REQUIREMENTS
        ]

    def strength(self, password: str) -> StrengthReading:
        score = sum(
            (
                len(password) >= 8,
                len(password) >= 12,
                re.search(r"[A-Z]", password) is not None,
                re.search(r"[a-z]", password) is not None,
                re.search(r"\d", password) is not None,
                SPECIAL_CHARS.search(password) is not None,
            )
        )
        displayed = score
        if self.engine.attempt_number >= 2:
            nudge = -1 if self._rng.random() > 0.5 else 1
            displayed = max(1, min(6, score + nudge))
        return StrengthReading(score=score, displayed=displayed)

    def _on_engine_event(self, event: str, result: EvaluationResult) -> None:
        if event != EVALUATE or result.passed:
            return
        if self.engine.attempt_number >= 2 and self._rng.random() > 0.5:
            self.confirm_cleared = True


def mask(password: str) -> str:
    if len(password) <= 4:
        return "*" * len(password)
    return password[:2] + "*" * (len(password) - 4) + password[-2:]
