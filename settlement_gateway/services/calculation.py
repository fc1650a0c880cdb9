"""Calculation services - validate, resolve pricing, and compute a lump-sum offer"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from settlement_gateway.domain.discount import DiscountConfigurationProvider, DiscountRateCalculator
from settlement_gateway.domain.exceptions import ValidationError
from settlement_gateway.domain.lump_sum import GuaranteedLumpSumCalculator, LCPLumpSumCalculator
from settlement_gateway.domain.models import (
    CalculationRequest,
    CalculationResult,
    FieldError,
    PaymentCategory,
)
from settlement_gateway.domain.mortality import HazardSurvivalModel, SurvivalModel
from settlement_gateway.domain.validators import GuaranteedValidator, LCPValidator, PaymentStreamValidator
from settlement_gateway.infrastructure.observability.metrics import record_offer, record_validation_failures
from settlement_gateway.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CalculationService:
    """
    Shared pipeline: validator -> discount configuration -> rate bracket -> calculator.

    Subclasses fix the category, validator and calculator. No retries; every
    failure surfaces to the caller.
    """

    category: PaymentCategory

    def __init__(
        self,
        provider: DiscountConfigurationProvider,
        calculator: GuaranteedLumpSumCalculator,
        validator: PaymentStreamValidator,
        clock: Clock = utc_now,
        rate_calculator: Optional[DiscountRateCalculator] = None,
    ):
        self.provider = provider
        self.calculator = calculator
        self.validator = validator
        self.clock = clock
        self.rate_calculator = rate_calculator or DiscountRateCalculator()

    def calculate(self, raw_input: Any) -> CalculationResult:
        """
        Compute the offer range for loosely-typed payment details.

        Requirements:
        - Input only reaches the calculator through the validator
        - Valuation date and generated_at both come from the injected clock
        - Offers are positive and minimum_offer <= maximum_offer

        Raises:
            ValidationError: Input is invalid or yields no payable offer
            ConfigurationError: Discount configuration is missing or unusable
        """
        validation = self.validator.validate(raw_input)
        if not validation.ok:
            record_validation_failures(validation.violations)
            logger.info(
                "Payment details rejected",
                extra={"category": self.category.value, "fields": [v.field for v in validation.violations]},
            )
            raise ValidationError(list(validation.violations))

        request = CalculationRequest(
            stream=validation.stream,
            configuration=self.provider.resolve(self.category),
        )
        rates = self.rate_calculator.resolve_bracket(request.configuration, request.stream.payment_mode)

        now = self.clock()
        computation = self.calculator.compute(request.stream, rates, now.date())

        if computation.payment_count == 0:
            field_name = "lump_sum_payments" if request.stream.lump_sum_payments else "end_date"
            violation = FieldError(field_name, "No payments remain after the valuation date")
            record_validation_failures([violation])
            raise ValidationError([violation])
        if computation.minimum_offer <= 0:
            violation = FieldError("amount", "Payment amount is too small to produce an offer")
            record_validation_failures([violation])
            raise ValidationError([violation])

        result = computation.to_result(now)
        record_offer(result.category.value, float(result.maximum_offer))
        return result


class GuaranteedCalculationService(CalculationService):
    """Offers for fixed-schedule payment streams"""

    category = PaymentCategory.GUARANTEED

    def __init__(self, provider: DiscountConfigurationProvider, clock: Clock = utc_now, **overrides):
        super().__init__(
            provider=provider,
            calculator=overrides.pop("calculator", None) or GuaranteedLumpSumCalculator(),
            validator=overrides.pop("validator", None) or GuaranteedValidator(),
            clock=clock,
            **overrides,
        )


class LCPCalculationService(CalculationService):
    """Offers for life-contingent payment streams, weighted by survival"""

    category = PaymentCategory.LCP

    def __init__(
        self,
        provider: DiscountConfigurationProvider,
        clock: Clock = utc_now,
        survival_model: Optional[SurvivalModel] = None,
        **overrides,
    ):
        super().__init__(
            provider=provider,
            calculator=overrides.pop("calculator", None) or LCPLumpSumCalculator(survival_model or HazardSurvivalModel()),
            validator=overrides.pop("validator", None) or LCPValidator(),
            clock=clock,
            **overrides,
        )
