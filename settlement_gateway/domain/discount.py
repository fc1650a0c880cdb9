"""Discount rate resolution - turns confidential pricing config into per-period rates"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from settlement_gateway.config import Settings
from settlement_gateway.domain.exceptions import ConfigurationError
from settlement_gateway.domain.models import DiscountConfiguration, PaymentCategory, PaymentMode, RateBracket
from settlement_gateway.domain.rounding import round_rate

logger = logging.getLogger(__name__)


class DiscountRateCalculator:
    """
    Convert a nominal annual discount rate into per-period rates.

    Conversion is simple nominal: annual / periods_per_year of the payment
    mode (12 for monthly and lump sums, 4 quarterly, 2 semi-annual, 1 annual).
    The lump-sum calculators count time in the same periods.
    """

    def annual_rate(self, config: DiscountConfiguration, spread: Decimal) -> Decimal:
        return config.base_rate + spread + config.category_adjustment

    def per_period(self, annual_rate: Decimal, payment_mode: PaymentMode) -> Decimal:
        return round_rate(annual_rate / payment_mode.periods_per_year)

    def resolve_effective_rate(self, config: DiscountConfiguration, payment_mode: PaymentMode) -> Decimal:
        """Per-period rate (percent) with the full configured spread"""
        return self.per_period(self.annual_rate(config, config.spread), payment_mode)

    def resolve_bracket(self, config: DiscountConfiguration, payment_mode: PaymentMode) -> RateBracket:
        """
        Rates for the two deterministic quotes.

        Minimum offer: base + full spread + category adjustment.
        Maximum offer: same, with the spread reduced by spread_reduction.
        """
        reduced_spread = config.spread - config.spread_reduction
        return RateBracket(
            minimum_offer_rate=self.resolve_effective_rate(config, payment_mode),
            maximum_offer_rate=self.per_period(self.annual_rate(config, reduced_spread), payment_mode),
        )


class DiscountConfigurationProvider:
    """Resolve the confidential DiscountConfiguration per payment category; fails closed"""

    def __init__(self, settings: Settings):
        self._settings = settings

    def resolve(self, category: PaymentCategory) -> DiscountConfiguration:
        """
        Raises:
            ConfigurationError: When any pricing value is missing or unusable.
                Messages name the setting, never its value.
        """
        adjustment_setting = (
            "lcp_category_adjustment" if category == PaymentCategory.LCP else "guaranteed_category_adjustment"
        )
        base_rate = self._required("discount_base_rate")
        spread = self._required("discount_spread")
        spread_reduction = self._required("discount_spread_reduction")
        category_adjustment = self._required(adjustment_setting)

        if base_rate < 0 or spread < 0 or category_adjustment < 0:
            raise ConfigurationError("Discount rates must not be negative")
        if not Decimal("0") < spread_reduction <= spread:
            raise ConfigurationError("discount_spread_reduction must be positive and no larger than discount_spread")

        return DiscountConfiguration(
            base_rate=base_rate,
            spread=spread,
            category_adjustment=category_adjustment,
            spread_reduction=spread_reduction,
        )

    def _required(self, name: str) -> Decimal:
        value: Optional[float] = getattr(self._settings, name, None)
        if value is None:
            logger.error("Discount configuration missing", extra={"setting": name})
            raise ConfigurationError(f"Missing discount setting: {name}")
        try:
            resolved = Decimal(str(value))
        except InvalidOperation as e:
            raise ConfigurationError(f"Invalid discount setting: {name}") from e
        if not resolved.is_finite():
            raise ConfigurationError(f"Invalid discount setting: {name}")
        return resolved
