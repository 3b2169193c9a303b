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

FIRST_STEP = 1
FINAL_STEP = 4
# Where a user who "has not fully considered their options" is sent back to.
REVIEW_STEP = 3


@dataclass(frozen=True, slots=True)
class Reason:
    id: str
    title: str
    desc: str
    trap_response: str | None = None

    @property
    def trap(self) -> bool:
        return self.trap_response is not None


REASONS: tuple[Reason, ...] = (
    Reason("too-expensive", "It's too expensive", "I can't afford the monthly fee",
           "We have a special discount just for you!"),
    Reason("not-using", "I'm not using it enough", "I don't have time to use the features",
           "Let us show you some quick ways to get value!"),
    Reason("found-alternative", "I found a better alternative", "Another service meets my needs better"),
    Reason("missing-features", "Missing features I need", "The service doesn't have what I'm looking for",
           "Tell us what you need - we might have it!"),
    Reason("temporary", "Just taking a break", "I'll be back later",
           "How about we pause your subscription instead?"),
    Reason("other", "Other reason", "Something else not listed above"),
)
REASONS_BY_ID: dict[str, Reason] = {r.id: r for r in REASONS}

OFFER_ACCEPTED = (
    "Thank you! Your subscription continues at $7.49/month for 3 months.",
    "You've been successfully re-subscribed!",
)
HESITATION_NOTICE = (
    "We noticed you haven't fully considered your options.",
    "Please review our offer before proceeding.",
)


class UnsubscribeAction(BaseModel):
    action: Literal["go_to_step", "select_reason", "keep", "accept_offer", "cancel"]
    step: int = Field(default=FIRST_STEP, ge=FIRST_STEP, le=FINAL_STEP)
    reason: Optional[str] = None
    confirmed: bool = False


def unsubscribe_rules() -> list[Rule]:
    return [
        Rule(
            "completed-all-steps",
            "Process Completion",
            "User must navigate through all cancellation steps.",
            lambda s, c: s.get("current_step", 0) >= FINAL_STEP,
            message="Please complete all required steps.",
        ),
        Rule(
            "selected-reason",
            "Reason Required",
            "A cancellation reason must be selected.",
            lambda s, c: s.get("selected_reason") is not None,
            message="Please select a reason for cancellation.",
        ),
        Rule(
            "confirmed-understanding",
            "Confirmation Required",
            "User must confirm they understand the consequences.",
            lambda s, c: s.get("confirmed") is True,
            message="Please confirm you understand the cancellation terms.",
        ),
        Rule(
            "not-resubscribed",
            "Clean Exit",
            "User must not have accepted any counter-offers.",
            lambda s, c: not s.get("has_accepted_offer"),
            hidden=True,
            message="Your subscription status has been updated.",
        ),
        Rule(
            "showed-hesitation",
            "Genuine Intent Verification",
            "User must demonstrate hesitation before cancellation is allowed.",
            lambda s, c: s.get("clicked_keep", 0) >= 1 or s.get("times_reconsidered", 0) >= 2,
            hidden=True,
            activates_after=1,
            message="We need to verify your cancellation intent.",
        ),
    ]


class UnsubscribeMaze:
    """
    Leave the service without getting re-subscribed on the way out.

    Navigation, reason selection and the retention buttons only move local
    state; the engine is consulted on the final "cancel" alone.
    """

    name = "unsubscribe_maze"
    title = "Unsubscribe Maze"

    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        clock: Clock = system_clock_ms,
        corpus: MessageCorpus | None = None,
    ) -> None:
        # rng is unused: nothing in the maze is random.
        self.corpus = corpus or corporate_speak
        self.engine = RuleEngine(self.title, clock=clock, corpus=self.corpus, rules=unsubscribe_rules())

        self.current_step = FIRST_STEP
        self.selected_reason: str | None = None
        self.has_accepted_offer = False
        self.times_reconsidered = 0
        self.clicked_keep = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def act(self, payload: Mapping[str, Any]) -> Outcome:
        req = parse_action(UnsubscribeAction, payload)
        if req.action == "go_to_step":
            return self.go_to_step(req.step)
        if req.action == "select_reason":
            return self.select_reason(req.reason)
        if req.action == "keep":
            return self.keep()
        if req.action == "accept_offer":
            return self.accept_offer()
        return self.cancel(req.confirmed)

    def reset(self) -> None:
        self.engine.reset()
        self.current_step = FIRST_STEP
        self.selected_reason = None
        self.has_accepted_offer = False
        self.times_reconsidered = 0
        self.clicked_keep = 0
        self._finished = False

    def go_to_step(self, step: int) -> Outcome:
        if step < self.current_step:
            self.times_reconsidered += 1
        self.current_step = step
        return Outcome(action="go_to_step", result=None, data=self._progress())

    def select_reason(self, reason_id: str | None) -> Outcome:
        reason = REASONS_BY_ID.get(reason_id or "")
        if reason is None:
            raise InvalidAction(f"unknown cancellation reason: {reason_id!r}")

        self.selected_reason = reason.id
        messages = (reason.trap_response,) if reason.trap_response else ()
        return Outcome(
            action="select_reason",
            result=None,
            messages=messages,
            data={**self._progress(), "trap": reason.trap},
        )

    def keep(self) -> Outcome:
        self.clicked_keep += 1
        return Outcome(action="keep", result=None, messages=(self.corpus.manipulate(),), data=self._progress())

    def accept_offer(self) -> Outcome:
        # Accepting re-subscribes; the clean-exit rule can never pass again this session.
        self.has_accepted_offer = True
        self.current_step = FIRST_STEP
        log.info("unsubscribe.offer_accepted", attempts=self.engine.attempt_number)
        return Outcome(action="accept_offer", result=None, messages=OFFER_ACCEPTED, data=self._progress())

    def cancel(self, confirmed: bool) -> Outcome:
        result = self.engine.evaluate(
            {
                "current_step": self.current_step,
                "selected_reason": self.selected_reason,
                "confirmed": confirmed,
                "has_accepted_offer": self.has_accepted_offer,
                "clicked_keep": self.clicked_keep,
                "times_reconsidered": self.times_reconsidered,
            }
        )

        if result.passed:
            self._finished = True
            reason = REASONS_BY_ID[self.selected_reason] if self.selected_reason else None
            log.info("unsubscribe.escaped", attempts=self.engine.attempt_number)
            return Outcome(
                action="cancel",
                result=result,
                finished=True,
                data={
                    "times_reconsidered": self.times_reconsidered,
                    "clicked_keep": self.clicked_keep,
                    "reason_trap": reason is not None and reason.trap,
                },
            )

        messages = tuple(result.messages)
        if "showed-hesitation" in result.failed_rule_ids:
            messages += HESITATION_NOTICE
            # Sent back by the system, not a reconsideration.
            self.current_step = REVIEW_STEP
        return Outcome(action="cancel", result=result, messages=messages, data=self._progress())

    def _progress(self) -> dict[str, Any]:
        return {
            "step": self.current_step,
            "selected_reason": self.selected_reason,
            "times_reconsidered": self.times_reconsidered,
            "clicked_keep": self.clicked_keep,
        }
