"""Classify an assistant reply into the conversation step it is asking about"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from settlement_gateway.domain.models import Step


@dataclass(frozen=True)
class StepRule:
    """Trigger phrases (lowercase) that select a step"""

    step: Step
    phrases: Tuple[str, ...]
    whole_words: bool = False  # "date" must not match "update"

    def matches(self, lowered_text: str) -> bool:
        if self.whole_words:
            return contains_phrase(lowered_text, self.phrases)
        return any(phrase in lowered_text for phrase in self.phrases)


def contains_phrase(lowered_text: str, phrases: Sequence[str]) -> bool:
    """True when any phrase appears as whole words"""
    return any(re.search(rf"\b{re.escape(phrase)}\b", lowered_text) for phrase in phrases)


# Evaluated top to bottom, first match wins. A reply naming several steps
# ("confirm your payment dates") resolves to whichever rule comes first.
DEFAULT_STEP_RULES: Tuple[StepRule, ...] = (
    StepRule(
        Step.PAYMENT_TYPE,
        ("type of payment", "payment type", "kind of payment", "guaranteed or life"),
    ),
    StepRule(
        Step.PAYMENT_MODE,
        ("how often", "payment frequency", "payment mode", "monthly, quarterly"),
    ),
    StepRule(
        Step.ANNUAL_INCREASE,
        ("annual increase", "yearly increase", "increase each year", "cost of living"),
    ),
    StepRule(
        Step.LIFE_CONTINGENT,
        ("life-contingent", "life contingent", "health profile", "whose life", "measuring life"),
    ),
    StepRule(
        Step.PAYMENT_AMOUNT,
        ("how much", "payment amount", "amount of each"),
    ),
    StepRule(
        Step.PAYMENT_DATES,
        ("start date", "end date", "payment dates", "when do"),
    ),
    StepRule(
        Step.REVIEW,
        ("review", "confirm", "is this correct", "look correct"),
    ),
    StepRule(
        Step.OFFER,
        ("your offer", "offer range", "estimated offer", "lump sum offer"),
    ),
)


class StepDetector:
    """Case-insensitive, first-match-wins phrase matcher over an ordered rule table"""

    def __init__(self, rules: Sequence[StepRule] = DEFAULT_STEP_RULES):
        self.rules = tuple(rules)

    def detect_step(self, reply_text: Any) -> Optional[Step]:
        """Return the first matching step, or None so the caller keeps its current step"""
        if not isinstance(reply_text, str) or not reply_text.strip():
            return None
        lowered = reply_text.lower()
        for rule in self.rules:
            if rule.matches(lowered):
                return rule.step
        return None
