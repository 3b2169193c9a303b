from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Sequence

ERRORS: tuple[str, ...] = (
    "We're unable to process your request at this time.",
    "Something doesn't look quite right.",
    "Please review your submission and try again.",
    "We value your input, but we cannot proceed.",
    "This action cannot be completed as specified.",
    "Your request has been noted but not accepted.",
    "We appreciate your patience during this process.",
    "The system has determined this is not optimal.",
    "Please ensure all requirements are met.",
    "We're committed to helping you succeed. Eventually.",
    "This doesn't meet our community guidelines.",
    "We've detected an inconsistency in your submission.",
    "For your security, we cannot proceed.",
    "This feature is working as intended.",
    "We're sorry you feel that way.",
    "Have you tried reviewing the documentation?",
    "This is a known limitation we're proud of.",
    "Your feedback has been forwarded to the appropriate team.",
    "We're unable to verify the information provided.",
    "Please try a different approach.",
)

SUCCESSES: tuple[str, ...] = (
    "Thank you for your compliance.",
    "Your submission has been processed. Finally.",
    "The system has accepted your input. Reluctantly.",
    "Congratulations on meeting our requirements.",
    "Your persistence has been noted and rewarded.",
    "Welcome. We knew you could do it. Eventually.",
    "Success. The system approves. For now.",
    "Your account has been validated. You're welcome.",
    "Excellent. You've proven yourself. Barely.",
    "The process is complete. We appreciate your patience.",
)

MANIPULATIONS: tuple[str, ...] = (
    "Are you sure? Most users prefer not to.",
    "This might affect your experience negatively.",
    "We noticed you're trying to leave. Is everything okay?",
    "Your preferences have been noted. They may not be honored.",
    "This action is irreversible. Probably.",
    "We'd hate to see you go. Really.",
    "Many users regret this decision.",
    "This will impact your personalized experience.",
    "We value your membership. Don't do this.",
    "Think of all the benefits you'll lose.",
)


@dataclass(slots=True)
class MessageCorpus:
    """
    Canned passive-aggressive copy.

    Three independent pools; every accessor picks uniformly at random.
    The only state is the random source, which callers inject to pin output.
    """

    rng: random.Random = field(default_factory=random.Random)
    errors: Sequence[str] = ERRORS
    successes: Sequence[str] = SUCCESSES
    manipulations: Sequence[str] = MANIPULATIONS

    def error(self) -> str:
        return self.rng.choice(self.errors)

    def success(self) -> str:
        return self.rng.choice(self.successes)

    def manipulate(self) -> str:
        return self.rng.choice(self.manipulations)


# Default corpus used by rules that don't carry their own message.
corporate_speak = MessageCorpus()
