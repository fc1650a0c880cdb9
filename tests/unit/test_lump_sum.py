"""Unit tests for the lump-sum offer calculators"""

import pytest
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from settlement_gateway.domain.lump_sum import (
    GuaranteedLumpSumCalculator,
    LCPLumpSumCalculator,
    build_schedule,
)
from settlement_gateway.domain.models import LumpSumPayment, PaymentCategory, PaymentMode, PaymentStream, RateBracket
from settlement_gateway.domain.mortality import HazardSurvivalModel

VALUATION = date(2024, 6, 1)
GENERATED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
RATES = RateBracket(minimum_offer_rate=Decimal("0.666667"), maximum_offer_rate=Decimal("0.541667"))


class FixedCurve:
    """Survival model returning a caller-supplied curve"""

    def __init__(self, curve):
        self.curve = curve

    def survival_curve(self, keys):
        return self.curve


def lcp_version(stream: PaymentStream) -> PaymentStream:
    return replace(stream, category=PaymentCategory.LCP, life_contingent_keys=("age-46-50", "smoke-yes"))


def test_build_schedule_applies_annual_increase():
    """Test payments grow once per completed year since start"""
    stream = PaymentStream(
        category=PaymentCategory.GUARANTEED,
        amount=Decimal("1000"),
        payment_mode=PaymentMode.ANNUAL,
        start_date=date(2025, 1, 1),
        end_date=date(2027, 1, 1),
        annual_increase_rate=Decimal("10"),
    )
    schedule = build_schedule(stream, date(2024, 1, 1))

    assert [months for months, _ in schedule] == [12, 24, 36]
    assert [amount for _, amount in schedule] == pytest.approx([1000, 1100, 1210])


def test_build_schedule_skips_past_payments(monthly_stream):
    schedule = build_schedule(monthly_stream, date(2029, 10, 15))
    # Nov, Dec, Jan
    assert len(schedule) == 3
    assert all(months > 0 for months, _ in schedule)


def test_guaranteed_offer_bracket(monthly_stream):
    """Test both offers positive, minimum below maximum, rounded to hundreds"""
    result = GuaranteedLumpSumCalculator().compute_offer(monthly_stream, RATES, VALUATION, GENERATED_AT)

    assert result.minimum_offer > 0
    assert result.minimum_offer < result.maximum_offer
    assert result.minimum_offer % 100 == 0
    assert result.maximum_offer % 100 == 0
    assert result.effective_rate == RATES.minimum_offer_rate
    assert result.generated_at == GENERATED_AT


def test_offer_below_undiscounted_total(monthly_stream):
    computation = GuaranteedLumpSumCalculator().compute(monthly_stream, RATES, VALUATION)

    assert computation.payment_count == 61
    assert computation.maximum_present_value < 61 * 1000


def test_zero_rate_returns_nominal_total(monthly_stream):
    flat = RateBracket(minimum_offer_rate=Decimal("0"), maximum_offer_rate=Decimal("0"))
    computation = GuaranteedLumpSumCalculator().compute(monthly_stream, flat, VALUATION)
    assert computation.minimum_present_value == pytest.approx(61_000)
    assert computation.minimum_offer == Decimal("61000")


def test_lump_sum_mode_single_payment(monthly_stream):
    stream = replace(monthly_stream, payment_mode=PaymentMode.LUMP_SUM)
    computation = GuaranteedLumpSumCalculator().compute(stream, RATES, VALUATION)
    assert computation.payment_count == 1
    assert computation.minimum_present_value < 1000


def dated_lump_sums(*payments) -> PaymentStream:
    ordered = tuple(LumpSumPayment(Decimal(amount), payment_date) for amount, payment_date in payments)
    return PaymentStream(
        category=PaymentCategory.GUARANTEED,
        amount=sum((payment.amount for payment in ordered), Decimal("0")),
        payment_mode=PaymentMode.LUMP_SUM,
        start_date=ordered[0].payment_date,
        end_date=ordered[-1].payment_date,
        lump_sum_payments=ordered,
    )


def test_dated_lump_sums_scheduled_on_their_own_dates():
    """Test each dated payment is kept at face amount and past ones are dropped"""
    stream = dated_lump_sums(("5000", date(2024, 1, 1)), ("10000", date(2025, 6, 1)), ("20000", date(2026, 6, 1)))

    schedule = build_schedule(stream, VALUATION)

    assert schedule == [(12, 10000.0), (24, 20000.0)]


def test_dated_lump_sums_discounted_monthly():
    stream = dated_lump_sums(("10000", date(2025, 6, 1)), ("20000", date(2026, 6, 1)))

    computation = GuaranteedLumpSumCalculator().compute(stream, RATES, VALUATION)

    monthly = 1 + float(RATES.minimum_offer_rate) / 100
    assert computation.payment_count == 2
    assert computation.minimum_present_value == pytest.approx(10000 * monthly**-12 + 20000 * monthly**-24)
    assert computation.minimum_offer <= computation.maximum_offer


def test_far_future_payment_contributes_nothing():
    stream = dated_lump_sums(("1000", date(9999, 12, 31)))

    computation = GuaranteedLumpSumCalculator().compute(stream, RATES, VALUATION)

    assert computation.minimum_present_value == pytest.approx(0.0)
    assert computation.minimum_offer == Decimal("0")


def test_calculation_is_deterministic(monthly_stream):
    calculator = GuaranteedLumpSumCalculator()
    first = calculator.compute_offer(monthly_stream, RATES, VALUATION, GENERATED_AT)
    second = calculator.compute_offer(monthly_stream, RATES, VALUATION, GENERATED_AT)
    assert first == second


def test_lcp_offer_not_above_guaranteed(monthly_stream):
    """Test survival weighting can only reduce present value"""
    guaranteed = GuaranteedLumpSumCalculator().compute_offer(monthly_stream, RATES, VALUATION, GENERATED_AT)
    lcp = LCPLumpSumCalculator(HazardSurvivalModel()).compute_offer(
        lcp_version(monthly_stream), RATES, VALUATION, GENERATED_AT
    )

    assert lcp.category == PaymentCategory.LCP
    assert lcp.minimum_offer <= guaranteed.minimum_offer
    assert lcp.maximum_offer <= guaranteed.maximum_offer
    assert 0 < lcp.minimum_offer <= lcp.maximum_offer


def test_lcp_with_certain_survival_matches_guaranteed(monthly_stream):
    guaranteed = GuaranteedLumpSumCalculator().compute(monthly_stream, RATES, VALUATION)
    lcp = LCPLumpSumCalculator(FixedCurve(lambda years: 1.0)).compute(lcp_version(monthly_stream), RATES, VALUATION)
    assert lcp.minimum_offer == guaranteed.minimum_offer


def test_lcp_rejects_weight_outside_unit_interval(monthly_stream):
    calculator = LCPLumpSumCalculator(FixedCurve(lambda years: 1.5))
    with pytest.raises(ValueError):
        calculator.compute(lcp_version(monthly_stream), RATES, VALUATION)


def test_lcp_rejects_increasing_weights(monthly_stream):
    calculator = LCPLumpSumCalculator(FixedCurve(lambda years: min(1.0, 0.1 + years / 10)))
    with pytest.raises(ValueError):
        calculator.compute(lcp_version(monthly_stream), RATES, VALUATION)
