"""Guided dialog state machine - collects payment details one step at a time"""

import logging
import re
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Tuple

from settlement_gateway.domain.exceptions import UnrecognizedStepError
from settlement_gateway.domain.models import (
    CollectedFields,
    ConversationState,
    FieldError,
    FlowAction,
    FlowOutcome,
    PaymentCategory,
    Prompt,
    RequestCalculation,
    Step,
    Terminal,
)
from settlement_gateway.domain.mortality import map_profile_answers, resolve_key
from settlement_gateway.domain.step_detection import StepDetector, StepRule, contains_phrase
from settlement_gateway.domain.validators import (
    GuaranteedValidator,
    parse_amount,
    parse_date,
    parse_keys,
    parse_rate,
    validator_for,
)
from settlement_gateway.infrastructure.observability.metrics import (
    step_transition_counter,
    unrecognized_reply_counter,
)
from settlement_gateway.services.messages import STANDARD_MESSAGES, CalculatorMessageService

logger = logging.getLogger(__name__)

GUARANTEED_SEQUENCE: Tuple[Step, ...] = (
    Step.PAYMENT_TYPE,
    Step.PAYMENT_MODE,
    Step.ANNUAL_INCREASE,
    Step.PAYMENT_AMOUNT,
    Step.PAYMENT_DATES,
    Step.REVIEW,
    Step.OFFER,
)

LCP_SEQUENCE: Tuple[Step, ...] = (
    Step.PAYMENT_TYPE,
    Step.PAYMENT_MODE,
    Step.ANNUAL_INCREASE,
    Step.LIFE_CONTINGENT,
    Step.PAYMENT_AMOUNT,
    Step.PAYMENT_DATES,
    Step.REVIEW,
    Step.OFFER,
)

STEP_FIELDS: Dict[Step, Tuple[str, ...]] = {
    Step.PAYMENT_TYPE: ("category",),
    Step.PAYMENT_MODE: ("payment_mode",),
    Step.ANNUAL_INCREASE: ("annual_increase_rate",),
    Step.LIFE_CONTINGENT: ("life_contingent_keys",),
    Step.PAYMENT_AMOUNT: ("amount",),
    Step.PAYMENT_DATES: ("start_date", "end_date"),
}

FIELD_STEPS: Dict[str, Step] = {name: step for step, names in STEP_FIELDS.items() for name in names}
FIELD_STEPS["payment"] = Step.PAYMENT_TYPE

# Fields the user can ask to change while reviewing ("change the amount").
# Only consulted once the reply carries an edit verb or a negation.
REVIEW_EDIT_RULES: Tuple[StepRule, ...] = (
    StepRule(Step.PAYMENT_DATES, ("date", "dates", "start", "end", "when"), whole_words=True),
    StepRule(Step.PAYMENT_AMOUNT, ("amount", "how much"), whole_words=True),
    StepRule(Step.ANNUAL_INCREASE, ("increase",), whole_words=True),
    StepRule(Step.PAYMENT_MODE, ("mode", "frequency", "how often"), whole_words=True),
    StepRule(Step.LIFE_CONTINGENT, ("health", "profile", "life-contingent key", "life-contingent keys"), whole_words=True),
    StepRule(Step.PAYMENT_TYPE, ("type", "category"), whole_words=True),
)

EDIT_VERBS = ("change", "edit", "update", "fix", "modify", "go back")

CONFIRMATIONS = ("yes", "yep", "confirm", "confirmed", "correct", "calculate", "looks good", "looks right", "proceed")

_NEGATION = re.compile(r"\b(?:no|not|nope|never|incorrect|wrong)\b|n't\b")

_DATE_TOKEN = re.compile(r"\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4}")


def _has_content(user_input: Any) -> bool:
    if user_input is None:
        return False
    if isinstance(user_input, str):
        return bool(user_input.strip())
    return True


def _is_edit_request(lowered: str) -> bool:
    return bool(_NEGATION.search(lowered)) or contains_phrase(lowered, EDIT_VERBS)


class LCPFlowHandler:
    """Life-contingent extension: adds the life-contingent step and parses its keys"""

    sequence = LCP_SEQUENCE

    def parse_keys(self, user_input: Any) -> Tuple[Optional[List[str]], List[FieldError]]:
        """
        Accept raw keys ("person-1, smoke-no"), free-text profile answers
        ("36-45, Male, Medium") or a questionnaire mapping.
        """
        try:
            if isinstance(user_input, Mapping):
                if "life_contingent_keys" in user_input:
                    keys = [resolve_key(key) for key in parse_keys(user_input["life_contingent_keys"])]
                else:
                    keys = map_profile_answers(dict(user_input))
            else:
                keys = [resolve_key(key) for key in parse_keys(user_input)]
        except ValueError as e:
            return None, [FieldError("life_contingent_keys", str(e))]

        if not keys:
            return None, [FieldError("life_contingent_keys", "At least one life-contingent key is required")]
        # Order preserved, duplicates dropped
        return list(dict.fromkeys(keys)), []


class CalculatorFlowService:
    """
    Advances a ConversationState by one turn.

    The assistant's reply may lead the dialog to another step, but never past
    the first step whose fields are still missing. Collected data only changes
    through validated user input.
    """

    def __init__(
        self,
        detector: Optional[StepDetector] = None,
        messages: Optional[CalculatorMessageService] = None,
        lcp_handler: Optional[LCPFlowHandler] = None,
    ):
        self.detector = detector or StepDetector()
        self.messages = messages or CalculatorMessageService()
        self.lcp_handler = lcp_handler or LCPFlowHandler()
        self.edit_detector = StepDetector(REVIEW_EDIT_RULES)
        self.field_checks = GuaranteedValidator()

    def sequence_for(self, category: Optional[PaymentCategory]) -> Sequence[Step]:
        if category == PaymentCategory.LCP:
            return self.lcp_handler.sequence
        return GUARANTEED_SEQUENCE

    def frontier(self, collected: CollectedFields) -> Step:
        """First step whose fields are still missing, else review"""
        for step in self.sequence_for(collected.category):
            names = STEP_FIELDS.get(step)
            if names is None:
                return step
            for name in names:
                value = getattr(collected, name)
                if value is None or (isinstance(value, list) and not value):
                    return step
        return Step.REVIEW

    def advance(self, state: ConversationState, user_input: Any = None, assistant_reply: Optional[str] = None) -> FlowOutcome:
        """
        Process one turn on a copy of the state.

        Args:
            state: Current conversation state (not mutated)
            user_input: Free text or a mapping of field values for the current step
            assistant_reply: Latest assistant reply text, classified by the StepDetector

        Returns:
            FlowOutcome with the next state and a Prompt, RequestCalculation or Terminal action
        """
        state = state.copy()
        step = state.current_step
        has_input = _has_content(user_input)

        if isinstance(assistant_reply, str) and assistant_reply.strip():
            self.messages.record_assistant_reply(state, assistant_reply)

        if step in (Step.REVIEW, Step.OFFER) and has_input:
            if isinstance(user_input, str):
                self.messages.log_user_choice(state, user_input.strip())
            edit = self._edit_target(state, user_input)
            if edit is not None:
                return self._enter(state, edit)
            if step == Step.REVIEW:
                if self._is_confirmation(user_input):
                    if isinstance(user_input, Mapping):
                        self.messages.log_user_choice(state, STANDARD_MESSAGES["CALCULATE_OFFER"])
                    return self.confirm(state)
                return self._enter(state, Step.REVIEW)

        if step == Step.OFFER:
            return FlowOutcome(state, self._calculation_request(state))

        if has_input and step != Step.REVIEW:
            updates, errors = self.parse_step_input(step, user_input)
            if errors:
                if isinstance(user_input, str):
                    self.messages.log_user_choice(state, user_input.strip())
                return FlowOutcome(state, Prompt(step, self.messages.prompt_for(step, tuple(errors)), tuple(errors)))
            self.messages.merge(state, step, updates)

        try:
            target = self._resolve_target(state, step, has_input, assistant_reply)
        except UnrecognizedStepError as e:
            state.unrecognized_replies += 1
            unrecognized_reply_counter.inc()
            logger.warning(
                f"Keeping current step: {e}",
                extra={"session_id": state.session_id, "step": step.value},
            )
            target = step
        return self._enter(state, target)

    def current_action(self, state: ConversationState) -> FlowAction:
        """What the user is being asked for right now, without advancing"""
        if state.current_step == Step.OFFER and state.last_result is not None:
            return Terminal(state.last_result)
        if state.current_step == Step.REVIEW:
            return Prompt(Step.REVIEW, self.messages.review_summary(state.collected))
        return Prompt(state.current_step, self.messages.prompt_for(state.current_step))

    def confirm(self, state: ConversationState) -> FlowOutcome:
        """Validate the whole stream and move to the offer step"""
        violations = self._full_validation(state.collected)
        if violations:
            return self.route_to_violations(state, violations)
        self._transition(state, Step.OFFER)
        return FlowOutcome(state, self._calculation_request(state))

    def route_to_violations(self, state: ConversationState, violations: Sequence[FieldError]) -> FlowOutcome:
        """Send the dialog back to the earliest step that owns a failing field"""
        sequence = self.sequence_for(state.collected.category)
        offending = {self._step_for_field(v.field, sequence) for v in violations}
        target = min(offending, key=sequence.index)
        errors = tuple(v for v in violations if self._step_for_field(v.field, sequence) == target)
        self._transition(state, target)
        return FlowOutcome(state, Prompt(target, self.messages.prompt_for(target, errors), errors))

    def parse_step_input(self, step: Step, user_input: Any) -> Tuple[Dict[str, Any], List[FieldError]]:
        """Parse and check the value(s) a step collects; returns (updates, errors)"""
        if step == Step.PAYMENT_TYPE:
            return self._parse_category(user_input)

        if step == Step.LIFE_CONTINGENT:
            keys, errors = self.lcp_handler.parse_keys(user_input)
            return ({"life_contingent_keys": keys} if keys else {}), errors

        if step == Step.PAYMENT_DATES:
            return self._parse_dates(user_input)

        field_name = STEP_FIELDS[step][0]
        value = user_input.get(field_name) if isinstance(user_input, Mapping) else user_input

        if step == Step.PAYMENT_MODE:
            mode, errors = self.field_checks.check_mode(value)
            return ({"payment_mode": mode} if not errors else {}), errors

        try:
            if step == Step.ANNUAL_INCREASE:
                rate = parse_rate(value)
                errors = self.field_checks.check_increase(rate)
                return ({"annual_increase_rate": rate} if not errors else {}), errors
            amount = parse_amount(value)
        except ValueError as e:
            return {}, [FieldError(field_name, str(e))]
        errors = self.field_checks.check_amount(amount)
        return ({"amount": amount} if not errors else {}), errors

    def _parse_category(self, user_input: Any) -> Tuple[Dict[str, Any], List[FieldError]]:
        if isinstance(user_input, Mapping):
            if "is_lcp" in user_input:
                category = PaymentCategory.LCP if user_input["is_lcp"] else PaymentCategory.GUARANTEED
                return {"category": category}, []
            user_input = user_input.get("category")
        if isinstance(user_input, PaymentCategory):
            return {"category": user_input}, []
        if isinstance(user_input, str):
            lowered = user_input.lower()
            is_lcp = any(word in lowered for word in ("life", "lcp", "contingent"))
            is_guaranteed = "guaranteed" in lowered
            if is_lcp != is_guaranteed:
                return {"category": PaymentCategory.LCP if is_lcp else PaymentCategory.GUARANTEED}, []
        return {}, [FieldError("category", "Please choose guaranteed or life-contingent payments")]

    def _parse_dates(self, user_input: Any) -> Tuple[Dict[str, Any], List[FieldError]]:
        if isinstance(user_input, Mapping):
            raw = [user_input.get("start_date"), user_input.get("end_date")]
        elif isinstance(user_input, str):
            raw = _DATE_TOKEN.findall(user_input)
        else:
            raw = []
        if len(raw) != 2 or any(value is None for value in raw):
            return {}, [FieldError("end_date", "Please provide both a start date and an end date")]
        try:
            start_date = parse_date(raw[0])
        except ValueError as e:
            return {}, [FieldError("start_date", str(e))]
        try:
            end_date = parse_date(raw[1])
        except ValueError as e:
            return {}, [FieldError("end_date", str(e))]
        errors = self.field_checks.check_dates(start_date, end_date)
        if errors:
            return {}, errors
        return {"start_date": start_date, "end_date": end_date}, []

    def _resolve_target(self, state: ConversationState, step: Step, has_input: bool, assistant_reply: Any) -> Step:
        sequence = self.sequence_for(state.collected.category)
        frontier = self.frontier(state.collected)
        detected = self.detector.detect_step(assistant_reply)
        if detected is not None and detected not in sequence:
            detected = None

        if detected is None or detected == step:
            if has_input:
                return frontier
            if detected is None and isinstance(assistant_reply, str) and assistant_reply.strip():
                raise UnrecognizedStepError("Assistant reply did not name a step")
            return step if step in sequence else frontier

        if sequence.index(detected) > sequence.index(frontier):
            return frontier
        return detected

    def _enter(self, state: ConversationState, target: Step) -> FlowOutcome:
        if target == Step.REVIEW:
            violations = self._full_validation(state.collected)
            if violations:
                return self.route_to_violations(state, violations)
            self._transition(state, Step.REVIEW)
            return FlowOutcome(state, Prompt(Step.REVIEW, self.messages.review_summary(state.collected)))
        if target == Step.OFFER:
            return self.confirm(state)
        self._transition(state, target)
        return FlowOutcome(state, Prompt(target, self.messages.prompt_for(target)))

    def _edit_target(self, state: ConversationState, user_input: Any) -> Optional[Step]:
        if isinstance(user_input, Mapping):
            requested = user_input.get("edit")
            try:
                target = Step(requested) if requested else None
            except ValueError:
                target = None
        elif _is_edit_request(str(user_input).lower()):
            target = self.edit_detector.detect_step(user_input)
        else:
            target = None
        if target in self.sequence_for(state.collected.category)[:-2]:
            return target
        return None

    def _is_confirmation(self, user_input: Any) -> bool:
        if isinstance(user_input, Mapping):
            return bool(user_input.get("confirm"))
        lowered = str(user_input).lower()
        if _NEGATION.search(lowered):
            return False
        return contains_phrase(lowered, CONFIRMATIONS)

    def _full_validation(self, collected: CollectedFields) -> Tuple[FieldError, ...]:
        if collected.category is None:
            return (FieldError("category", "Please choose guaranteed or life-contingent payments"),)
        result = validator_for(collected.category).validate(collected.to_raw())
        return result.violations

    def _calculation_request(self, state: ConversationState) -> RequestCalculation:
        return RequestCalculation(category=state.collected.category, payload=state.collected.to_raw())

    def _step_for_field(self, field_name: str, sequence: Sequence[Step]) -> Step:
        step = FIELD_STEPS.get(field_name, Step.PAYMENT_TYPE)
        return step if step in sequence else Step.PAYMENT_TYPE

    def _transition(self, state: ConversationState, target: Step) -> None:
        if state.current_step != target:
            step_transition_counter.labels(from_step=state.current_step.value, to_step=target.value).inc()
            state.current_step = target
