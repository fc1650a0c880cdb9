"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from settlement_gateway.api.main import create_app
from settlement_gateway.api.dependencies import get_clock, get_settings
from settlement_gateway.config import Settings
from settlement_gateway.domain.discount import DiscountConfigurationProvider
from settlement_gateway.domain.models import PaymentCategory, PaymentMode, PaymentStream
from settlement_gateway.infrastructure.database.models import Base
from settlement_gateway.infrastructure.database.session import get_db
from settlement_gateway.services.calculation import GuaranteedCalculationService, LCPCalculationService


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Valuation "today" for every test
FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def discount_settings() -> Settings:
    """Complete discount configuration (percent)"""
    return Settings(
        discount_base_rate=5.0,
        discount_spread=3.0,
        discount_spread_reduction=1.5,
        guaranteed_category_adjustment=0.0,
        lcp_category_adjustment=1.0,
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def provider(discount_settings: Settings) -> DiscountConfigurationProvider:
    return DiscountConfigurationProvider(discount_settings)


@pytest.fixture
def guaranteed_service(provider, fixed_clock) -> GuaranteedCalculationService:
    return GuaranteedCalculationService(provider, clock=fixed_clock)


@pytest.fixture
def lcp_service(provider, fixed_clock) -> LCPCalculationService:
    return LCPCalculationService(provider, clock=fixed_clock)


@pytest.fixture
def monthly_stream() -> PaymentStream:
    """$1,000 monthly, 2025-01-01 to 2030-01-01, no increase"""
    return PaymentStream(
        category=PaymentCategory.GUARANTEED,
        amount=Decimal("1000"),
        payment_mode=PaymentMode.MONTHLY,
        start_date=date(2025, 1, 1),
        end_date=date(2030, 1, 1),
    )


@pytest.fixture
def client(db: Session, discount_settings: Settings, fixed_clock) -> TestClient:
    """Create FastAPI test client with test database, pricing settings and clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: discount_settings
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    return TestClient(app)
