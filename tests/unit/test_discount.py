"""Unit tests for discount rate resolution"""

import pytest
from decimal import Decimal
from settlement_gateway.config import Settings
from settlement_gateway.domain.discount import DiscountConfigurationProvider, DiscountRateCalculator
from settlement_gateway.domain.exceptions import ConfigurationError
from settlement_gateway.domain.models import DiscountConfiguration, PaymentCategory, PaymentMode


@pytest.fixture
def config() -> DiscountConfiguration:
    return DiscountConfiguration(
        base_rate=Decimal("5"),
        spread=Decimal("3"),
        category_adjustment=Decimal("0"),
        spread_reduction=Decimal("1.5"),
    )


def test_resolve_effective_rate_monthly(config):
    """Test 8% nominal annual becomes 8/12 per month"""
    rate = DiscountRateCalculator().resolve_effective_rate(config, PaymentMode.MONTHLY)
    assert rate == Decimal("0.666667")


def test_resolve_effective_rate_by_mode(config):
    calculator = DiscountRateCalculator()
    assert calculator.resolve_effective_rate(config, PaymentMode.QUARTERLY) == Decimal("2")
    assert calculator.resolve_effective_rate(config, PaymentMode.SEMI_ANNUAL) == Decimal("4")
    assert calculator.resolve_effective_rate(config, PaymentMode.ANNUAL) == Decimal("8")
    assert calculator.resolve_effective_rate(config, PaymentMode.LUMP_SUM) == Decimal("0.666667")


def test_resolve_bracket_reduces_spread_for_maximum(config):
    """Test maximum-offer rate uses spread minus spread_reduction"""
    bracket = DiscountRateCalculator().resolve_bracket(config, PaymentMode.ANNUAL)
    assert bracket.minimum_offer_rate == Decimal("8")
    assert bracket.maximum_offer_rate == Decimal("6.5")
    assert bracket.maximum_offer_rate < bracket.minimum_offer_rate


def test_configuration_repr_is_redacted(config):
    assert "5" not in repr(config)
    assert "redacted" in repr(config)


def test_provider_resolves_category_adjustment(discount_settings):
    """Test LCP picks its own category adjustment"""
    provider = DiscountConfigurationProvider(discount_settings)
    assert provider.resolve(PaymentCategory.GUARANTEED).category_adjustment == Decimal("0.0")
    assert provider.resolve(PaymentCategory.LCP).category_adjustment == Decimal("1.0")


def test_provider_fails_closed_on_missing_setting():
    """Test missing config raises and names the setting only"""
    provider = DiscountConfigurationProvider(
        Settings(discount_base_rate=5.0, discount_spread=3.0, discount_spread_reduction=1.0)
    )
    with pytest.raises(ConfigurationError) as exc_info:
        provider.resolve(PaymentCategory.GUARANTEED)
    assert "guaranteed_category_adjustment" in str(exc_info.value)


def test_provider_rejects_spread_reduction_above_spread():
    provider = DiscountConfigurationProvider(
        Settings(
            discount_base_rate=5.0,
            discount_spread=1.0,
            discount_spread_reduction=2.0,
            guaranteed_category_adjustment=0.0,
            lcp_category_adjustment=0.0,
        )
    )
    with pytest.raises(ConfigurationError):
        provider.resolve(PaymentCategory.GUARANTEED)


def test_settings_repr_hides_discount_values(discount_settings):
    assert "discount_spread" not in repr(discount_settings)
