"""Unit tests for assistant reply step detection"""

import pytest
from settlement_gateway.domain.models import Step
from settlement_gateway.domain.step_detection import DEFAULT_STEP_RULES, StepDetector, StepRule


@pytest.mark.parametrize(
    "reply, expected",
    [
        ("What type of payments do you receive?", Step.PAYMENT_TYPE),
        ("How often do you receive these payments?", Step.PAYMENT_MODE),
        ("Do your payments have an ANNUAL INCREASE?", Step.ANNUAL_INCREASE),
        ("Is there a yearly increase on the payments?", Step.ANNUAL_INCREASE),
        ("Tell me about the health profile of the measuring life.", Step.LIFE_CONTINGENT),
        ("How much is each payment?", Step.PAYMENT_AMOUNT),
        ("When do the payments start?", Step.PAYMENT_DATES),
        ("Please share the start date and end date.", Step.PAYMENT_DATES),
        ("Let's review what you entered.", Step.REVIEW),
        ("Here is your estimated offer range.", Step.OFFER),
    ],
)
def test_detect_step(reply, expected):
    assert StepDetector().detect_step(reply) == expected


def test_unrelated_text_returns_none_every_time():
    detector = StepDetector()
    assert detector.detect_step("unrelated text") is None
    assert detector.detect_step("unrelated text") is None


@pytest.mark.parametrize("reply", [None, "", "   ", 42, ["payment type"]])
def test_non_text_or_blank_returns_none(reply):
    assert StepDetector().detect_step(reply) is None


def test_first_matching_rule_wins():
    """Test a reply naming dates and review resolves by rule order"""
    assert StepDetector().detect_step("Please confirm your payment dates") == Step.PAYMENT_DATES


def test_custom_rule_table():
    detector = StepDetector([StepRule(Step.REVIEW, ("all set",))])
    assert detector.detect_step("You're all set!") == Step.REVIEW
    assert detector.detect_step("What type of payment?") is None


def test_default_rules_follow_conversation_order():
    steps = [rule.step for rule in DEFAULT_STEP_RULES]
    assert steps == list(Step)


def test_whole_word_rule_ignores_embedded_phrases():
    detector = StepDetector([StepRule(Step.PAYMENT_DATES, ("date",), whole_words=True)])
    assert detector.detect_step("Please update the amount") is None
    assert detector.detect_step("The start date moved") == Step.PAYMENT_DATES
