"""Dependency injection for FastAPI endpoints"""

from typing import Dict
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from settlement_gateway.config import Settings, settings
from settlement_gateway.domain.discount import DiscountConfigurationProvider
from settlement_gateway.domain.models import PaymentCategory
from settlement_gateway.infrastructure.clients.assistant import AssistantClient
from settlement_gateway.infrastructure.database.repositories import SqlSessionStore
from settlement_gateway.infrastructure.database.session import get_db
from settlement_gateway.services.assistant import AssistantOrchestrator, AssistantStorageService
from settlement_gateway.services.calculation import (
    CalculationService,
    Clock,
    GuaranteedCalculationService,
    LCPCalculationService,
)
from settlement_gateway.services.flow import CalculatorFlowService
from settlement_gateway.services.messages import CalculatorMessageService
from settlement_gateway.services.orchestrator import CalculatorOrchestrator
from settlement_gateway.services.sessions import SessionManager
from settlement_gateway.utils.date_utils import utc_now


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings() -> Settings:
    return settings


def get_clock() -> Clock:
    """Time source for valuation dates and transcript timestamps"""
    return utc_now


def get_discount_provider(app_settings: Settings = Depends(get_settings)) -> DiscountConfigurationProvider:
    return DiscountConfigurationProvider(app_settings)


def get_calculation_services(
    provider: DiscountConfigurationProvider = Depends(get_discount_provider),
    clock: Clock = Depends(get_clock),
) -> Dict[PaymentCategory, CalculationService]:
    return {
        PaymentCategory.GUARANTEED: GuaranteedCalculationService(provider, clock=clock),
        PaymentCategory.LCP: LCPCalculationService(provider, clock=clock),
    }


def get_assistant_client() -> AssistantClient:
    """Provide Assistant API client instance"""
    return AssistantClient()


def get_session_store(db: Session = Depends(get_db)) -> SqlSessionStore:
    return SqlSessionStore(db)


def get_session_manager(request: Request, store: SqlSessionStore = Depends(get_session_store)) -> SessionManager:
    """Session manager sharing the application's per-session lock registry"""
    return SessionManager(store, locks=request.app.state.session_locks)


def get_orchestrator(
    sessions: SessionManager = Depends(get_session_manager),
    services: Dict[PaymentCategory, CalculationService] = Depends(get_calculation_services),
    assistant_client: AssistantClient = Depends(get_assistant_client),
    clock: Clock = Depends(get_clock),
) -> CalculatorOrchestrator:
    flow = CalculatorFlowService(messages=CalculatorMessageService(clock=clock))
    return CalculatorOrchestrator(sessions, flow, services, assistant_client)


def get_assistant_orchestrator(
    store: SqlSessionStore = Depends(get_session_store),
    assistant_client: AssistantClient = Depends(get_assistant_client),
) -> AssistantOrchestrator:
    return AssistantOrchestrator(AssistantStorageService(store), client=assistant_client)
