"""Transcript recording and user-facing text for the calculator dialog"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from settlement_gateway.domain.models import (
    CalculationResult,
    CollectedFields,
    ConversationState,
    HistoryEntry,
    PaymentCategory,
    Step,
)
from settlement_gateway.domain.rounding import format_currency, format_percent
from settlement_gateway.utils.date_utils import utc_now

Clock = Callable[[], datetime]


STEP_PROMPTS: Dict[Step, str] = {
    Step.PAYMENT_TYPE: "What type of payments do you receive: guaranteed or life-contingent?",
    Step.PAYMENT_MODE: "How often do you receive payments: monthly, quarterly, semi-annually, annually, or as a lump sum?",
    Step.ANNUAL_INCREASE: "Do your payments have an annual increase? Enter a percentage, or 0 if they stay the same.",
    Step.LIFE_CONTINGENT: (
        "Life-contingent payments depend on the measuring life. Please share the health profile "
        "details (for example: 36-45, Male, Medium, Normal Weight, No, Great, Normal), separated by commas."
    ),
    Step.PAYMENT_AMOUNT: "How much is each payment?",
    Step.PAYMENT_DATES: "When do your payments start and end? Please give both dates, e.g. 2026-01-01 to 2036-01-01.",
    Step.REVIEW: "Please review your payment details. Reply 'confirm' to see your offer, or tell me what to change.",
    Step.OFFER: "Your offer is ready.",
}

STANDARD_MESSAGES: Dict[str, str] = {
    "DETAILS_PROVIDED": "I've provided my payment details",
    "PROFILE_PROVIDED": "I've provided my health profile",
    "CALCULATE_OFFER": "Calculate my offer",
    "CALCULATION_FAILED": "We couldn't calculate your offer with those details. Let's fix them.",
}


class CalculatorMessageService:
    """Records user choices and assistant replies, and renders prompts and summaries"""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    def log_user_choice(self, state: ConversationState, text: str) -> None:
        state.history.append(HistoryEntry(role="user", text=text, timestamp=self.clock()))

    def record_assistant_reply(self, state: ConversationState, text: str) -> None:
        state.history.append(HistoryEntry(role="assistant", text=text, timestamp=self.clock()))

    def record_system(self, state: ConversationState, text: str) -> None:
        state.history.append(HistoryEntry(role="system", text=text, timestamp=self.clock()))

    def merge(self, state: ConversationState, step: Step, updates: Dict[str, Any]) -> None:
        """Apply parsed step input to the collected fields and log it as the user's choice"""
        collected = replace(state.collected, **updates)
        if updates.get("category") == PaymentCategory.GUARANTEED:
            collected.life_contingent_keys = None
        state.collected = collected
        self.log_user_choice(state, self.format_choice(step, collected))

    def format_choice(self, step: Step, collected: CollectedFields) -> str:
        if step == Step.PAYMENT_TYPE:
            label = "Life-contingent" if collected.category == PaymentCategory.LCP else "Guaranteed"
            return f"Payment type: {label}"
        if step == Step.PAYMENT_MODE:
            return f"Payment mode: {collected.payment_mode.value}"
        if step == Step.ANNUAL_INCREASE:
            return f"Annual increase: {format_percent(collected.annual_increase_rate)}"
        if step == Step.LIFE_CONTINGENT:
            return STANDARD_MESSAGES["PROFILE_PROVIDED"]
        if step == Step.PAYMENT_AMOUNT:
            return f"Payment amount: {format_currency(collected.amount)}"
        if step == Step.PAYMENT_DATES:
            return f"Payment dates: {collected.start_date.isoformat()} to {collected.end_date.isoformat()}"
        return STANDARD_MESSAGES["DETAILS_PROVIDED"]

    def prompt_for(self, step: Step, errors: Optional[tuple] = None) -> str:
        text = STEP_PROMPTS[step]
        if errors:
            problems = " ".join(f"{error.message}." for error in errors)
            return f"{problems} {text}"
        return text

    def review_summary(self, collected: CollectedFields) -> str:
        lines = [
            "Here's what you told me:",
            f"- Payment type: {'Life-contingent' if collected.category == PaymentCategory.LCP else 'Guaranteed'}",
            f"- Payment mode: {collected.payment_mode.value if collected.payment_mode else 'not provided'}",
            f"- Payment amount: {format_currency(collected.amount) if collected.amount is not None else 'not provided'}",
            f"- Annual increase: {format_percent(collected.annual_increase_rate or 0)}",
        ]
        if collected.start_date and collected.end_date:
            lines.append(f"- Payment dates: {collected.start_date.isoformat()} to {collected.end_date.isoformat()}")
        if collected.category == PaymentCategory.LCP:
            lines.append(f"- Health profile entries: {len(collected.life_contingent_keys or [])}")
        lines.append(STEP_PROMPTS[Step.REVIEW])
        return "\n".join(lines)

    def offer_summary(self, result: CalculationResult) -> str:
        return (
            f"Your estimated lump sum offer is between {format_currency(result.minimum_offer)} "
            f"and {format_currency(result.maximum_offer)}."
        )
