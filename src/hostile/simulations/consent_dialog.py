from __future__ import annotations

import random
from typing import Any, Literal, Mapping, Optional

import structlog
from pydantic import BaseModel, Field

from hostile.core.engine.clock import Clock, system_clock_ms
from hostile.core.engine.engine import RuleEngine
from hostile.core.errors import InvalidAction
from hostile.core.events.bus import EVALUATE
from hostile.core.rules.results import EvaluationResult
from hostile.core.rules.rule import Rule
from hostile.messages.corpus import MessageCorpus, corporate_speak
from hostile.simulations.base import Outcome, parse_action

log = structlog.get_logger()

CheckboxId = Literal["check1", "check2", "check3", "check4"]
REQUIRED_CHECKBOXES: tuple[str, ...] = ("check1", "check2", "check3")
CHECKBOXES: tuple[str, ...] = REQUIRED_CHECKBOXES + ("check4",)

MIN_READING_MS = 10_000
BOTTOM_PERCENT = 98
SCROLLED_BACK_PERCENT = 50

DECLINE_MESSAGES: tuple[str, ...] = (
    "Are you sure? Most users find our terms quite reasonable.",
    "We're sorry to hear that. Perhaps you'd like to reconsider?",
    "Declining will limit your access to important features.",
    "We value your participation. Won't you give us another chance?",
    "Your preferences have been noted. The decline button will be available again shortly.",
)
DECLINE_COOLDOWN_MS = 2_000
DECLINE_COOLDOWN_STEP_MS = 1_000


class ConsentAction(BaseModel):
    action: Literal["scroll", "toggle", "accept", "decline"]
    percentage: float = Field(default=0, ge=0, le=100)
    checkbox: Optional[CheckboxId] = None
    checked: bool = True


def _in_order(order: Any) -> bool:
    picked = [cid for cid in order or () if cid in REQUIRED_CHECKBOXES]
    if len(picked) < len(REQUIRED_CHECKBOXES):
        # not all ticked yet
        return True
    return tuple(picked) == REQUIRED_CHECKBOXES


def consent_rules() -> list[Rule]:
    return [
        Rule(
            "scroll-complete",
            "Scroll Completion",
            "User must scroll through 100% of the terms before acceptance is valid.",
            lambda s, c: s.get("scrolled_to_bottom") is True,
            message="Please ensure you have reviewed all terms before proceeding.",
        ),
        Rule(
            "minimum-time",
            "Reading Time Requirement",
            "User must spend at least 10 seconds with the terms visible.",
            lambda s, c: s.get("time_spent_reading", 0) >= MIN_READING_MS,
            message=(
                "We noticed you haven't spent much time reviewing our terms. "
                "Please take a moment to read them carefully."
            ),
        ),
        Rule(
            "required-checkboxes",
            "Required Agreements",
            "The first three checkboxes are mandatory for consent.",
            lambda s, c: all(s.get(cid) for cid in REQUIRED_CHECKBOXES),
            message="Please acknowledge all required agreements to continue.",
        ),
        Rule(
            "optional-trap",
            "Marketing Consent Trap",
            'The "optional" checkbox must remain unchecked. Checking it invalidates consent.',
            lambda s, c: s.get("check4") is False,
            hidden=True,
            message="There was an issue processing your preferences. Please review your selections.",
        ),
        Rule(
            "checkbox-order",
            "Sequential Agreement Requirement",
            "Checkboxes must be checked in order: 1, then 2, then 3.",
            lambda s, c: _in_order(s.get("checkbox_order")),
            hidden=True,
            activates_after=2,
            message="We detected an inconsistency in your agreement pattern. Please try again.",
        ),
        Rule(
            "scroll-verification",
            "Scroll Verification Protocol",
            "User must scroll back up after reaching the bottom to verify engagement.",
            lambda s, c: s.get("has_scrolled_back") is True,
            hidden=True,
            activates_after=3,
            message="Our system requires additional verification of your review process.",
        ),
    ]


class ConsentDialog:
    """
    Accept the Terms & Conditions. Valid consent has requirements nobody lists.

    The client reports scroll position and checkbox changes; the server keeps
    the authoritative copy and reads the reading time off the engine clock.
    Failed acceptances trigger listeners that undo the user's progress.
    """

    name = "consent_dialog"
    title = "Consent Dialog"

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
        self.engine = RuleEngine(self.title, clock=clock, corpus=self.corpus, rules=consent_rules())

        self._clear_progress()
        self.button_evasive = False
        self._finished = False

        self.engine.on_event(self._reset_scroll)
        self.engine.on_event(self._drop_a_checkbox)
        self.engine.on_event(self._make_button_evasive)

    @property
    def finished(self) -> bool:
        return self._finished

    def act(self, payload: Mapping[str, Any]) -> Outcome:
        req = parse_action(ConsentAction, payload)
        if req.action == "scroll":
            return self.scroll(req.percentage)
        if req.action == "toggle":
            if req.checkbox is None:
                raise InvalidAction("toggle requires a checkbox")
            return self.toggle(req.checkbox, req.checked)
        if req.action == "decline":
            return self.decline()
        return self.accept()

    def reset(self) -> None:
        self.engine.reset()
        self._clear_progress()
        self.button_evasive = False
        self._finished = False

    def scroll(self, percentage: float) -> Outcome:
        if percentage >= BOTTOM_PERCENT:
            self.scrolled_to_bottom = True
        if self.scrolled_to_bottom and percentage < SCROLLED_BACK_PERCENT:
            self.has_scrolled_back = True
        return Outcome(action="scroll", result=None, data=self._progress())

    def toggle(self, checkbox: str, checked: bool) -> Outcome:
        self.checks[checkbox] = checked
        if checked and checkbox not in self.checkbox_order:
            self.checkbox_order.append(checkbox)
        elif not checked and checkbox in self.checkbox_order:
            self.checkbox_order.remove(checkbox)
        return Outcome(action="toggle", result=None, data=self._progress())

    def accept(self) -> Outcome:
        result = self.engine.evaluate(
            {
                "scrolled_to_bottom": self.scrolled_to_bottom,
                "has_scrolled_back": self.has_scrolled_back,
                "time_spent_reading": self.time_spent_reading(),
                "checkbox_order": tuple(self.checkbox_order),
                **self.checks,
            }
        )
        if result.passed:
            self._finished = True
            log.info("consent.accepted", attempts=self.engine.attempt_number)
            return Outcome(action="accept", result=result, finished=True)
        return Outcome(action="accept", result=result, messages=tuple(result.messages), data=self._progress())

    def decline(self) -> Outcome:
        attempt = self.engine.attempt_number
        return Outcome(
            action="decline",
            result=None,
            messages=(DECLINE_MESSAGES[min(attempt, len(DECLINE_MESSAGES) - 1)],),
            data={"decline_disabled_ms": DECLINE_COOLDOWN_MS + attempt * DECLINE_COOLDOWN_STEP_MS},
        )

    def time_spent_reading(self) -> int:
        return self._clock() - self.reading_started_at

    # ---------------- Listeners ----------------

    def _reset_scroll(self, event: str, result: EvaluationResult) -> None:
        if event == EVALUATE and not result.passed and self.engine.attempt_number > 3:
            self.scrolled_to_bottom = False
            self.has_scrolled_back = False

    def _drop_a_checkbox(self, event: str, result: EvaluationResult) -> None:
        if event != EVALUATE or result.passed or self.engine.attempt_number <= 5:
            return
        victim = REQUIRED_CHECKBOXES[self._rng.randrange(len(REQUIRED_CHECKBOXES))]
        if self.checks[victim]:
            self.toggle(victim, False)

    def _make_button_evasive(self, event: str, result: EvaluationResult) -> None:
        if event == EVALUATE and not result.passed and self.engine.attempt_number >= 2 and not self.button_evasive:
            self.button_evasive = True

    # ---------------- Helpers ----------------

    def _clear_progress(self) -> None:
        self.scrolled_to_bottom = False
        self.has_scrolled_back = False
        self.checks: dict[str, bool] = {cid: False for cid in CHECKBOXES}
        self.checkbox_order: list[str] = []
        self.reading_started_at = self._clock()

    def _progress(self) -> dict[str, Any]:
        return {
            "scrolled_to_bottom": self.scrolled_to_bottom,
            "checks": dict(self.checks),
            "time_spent_reading": self.time_spent_reading(),
            "button_evasive": self.button_evasive,
        }
