"""Lump-sum offer engines - NPV of a payment stream bracketed by two discount rates"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Tuple

from settlement_gateway.domain.models import (
    CalculationResult,
    OfferComputation,
    PaymentCategory,
    PaymentStream,
    RateBracket,
)
from settlement_gateway.domain.mortality import SurvivalCurve, SurvivalModel
from settlement_gateway.domain.rounding import round_up_100
from settlement_gateway.utils.date_utils import full_years_between, generate_payment_dates, months_between

# (months from valuation date, payment amount)
Schedule = List[Tuple[float, float]]


def build_schedule(stream: PaymentStream, valuation_date: date) -> Schedule:
    """
    Remaining payments of the stream.

    Payments fall on start_date and every months_per_payment after it, up to
    and including end_date. Each payment grows by annual_increase_rate per
    completed year since start_date. Payments before valuation_date are
    already paid out and excluded.

    Dated lump sums are scheduled on their own dates at face amount.
    """
    if stream.lump_sum_payments:
        return [
            (months_between(valuation_date, payment.payment_date), float(payment.amount))
            for payment in stream.lump_sum_payments
            if payment.payment_date >= valuation_date
        ]

    growth = 1.0 + float(stream.annual_increase_rate) / 100.0
    base_amount = float(stream.amount)

    schedule: Schedule = []
    for pay_date in generate_payment_dates(stream.start_date, stream.end_date, stream.payment_mode.months_per_payment):
        if pay_date < valuation_date:
            continue
        amount = base_amount * growth ** full_years_between(stream.start_date, pay_date)
        schedule.append((months_between(valuation_date, pay_date), amount))
    return schedule


class GuaranteedLumpSumCalculator:
    """Present value of a fixed-schedule stream; no survival weighting"""

    category = PaymentCategory.GUARANTEED

    def compute(self, stream: PaymentStream, rates: RateBracket, valuation_date: date) -> OfferComputation:
        schedule = build_schedule(stream, valuation_date)
        weights = self._weights(stream, schedule)
        months_per_period = 12 / stream.payment_mode.periods_per_year

        minimum_pv = _present_value(schedule, weights, rates.minimum_offer_rate, months_per_period)
        maximum_pv = _present_value(schedule, weights, rates.maximum_offer_rate, months_per_period)

        return OfferComputation(
            category=self.category,
            rates=rates,
            minimum_present_value=minimum_pv,
            maximum_present_value=maximum_pv,
            payment_count=len(schedule),
            minimum_offer=round_up_100(minimum_pv),
            maximum_offer=round_up_100(maximum_pv),
        )

    def compute_offer(
        self,
        stream: PaymentStream,
        rates: RateBracket,
        valuation_date: date,
        generated_at: datetime,
    ) -> CalculationResult:
        return self.compute(stream, rates, valuation_date).to_result(generated_at)

    def _weights(self, stream: PaymentStream, schedule: Schedule) -> List[float]:
        return [1.0] * len(schedule)


class LCPLumpSumCalculator(GuaranteedLumpSumCalculator):
    """Same discounting, with each payment weighted by the payee's survival probability"""

    category = PaymentCategory.LCP

    def __init__(self, survival_model: SurvivalModel):
        self.survival_model = survival_model

    def _weights(self, stream: PaymentStream, schedule: Schedule) -> List[float]:
        curve: SurvivalCurve = self.survival_model.survival_curve(stream.life_contingent_keys)
        weights = []
        previous = 1.0
        for months, _ in schedule:
            weight = curve(months / 12.0)
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"Survival weight {weight} outside [0, 1]")
            if weight > previous:
                raise ValueError("Survival weights must not increase over time")
            weights.append(weight)
            previous = weight
        return weights


def _present_value(schedule: Schedule, weights: List[float], rate: Decimal, months_per_period: float) -> float:
    periodic_rate = float(rate) / 100.0
    total = 0.0
    for (months, amount), weight in zip(schedule, weights):
        periods = months / months_per_period
        # Underflows to 0 for far-future payments
        total += amount * weight * (1.0 + periodic_rate) ** -periods
    return total
