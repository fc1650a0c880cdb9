"""Calculator orchestrator - one conversation turn end to end"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from settlement_gateway.domain.exceptions import ExternalCollaboratorError, ValidationError
from settlement_gateway.domain.models import (
    ConversationState,
    FlowAction,
    FlowOutcome,
    PaymentCategory,
    RequestCalculation,
    Terminal,
)
from settlement_gateway.infrastructure.clients.assistant import AssistantClient
from settlement_gateway.infrastructure.observability.logging import log_turn
from settlement_gateway.services.calculation import CalculationService
from settlement_gateway.services.flow import CalculatorFlowService
from settlement_gateway.services.messages import STANDARD_MESSAGES
from settlement_gateway.services.sessions import SessionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnResult:
    """State after the turn and what to show the user"""

    state: ConversationState
    action: FlowAction
    calculated: bool = False  # a new offer was computed this turn


class CalculatorOrchestrator:
    """Composes sessions, the assistant client, the flow service and the calculation services"""

    def __init__(
        self,
        sessions: SessionManager,
        flow: CalculatorFlowService,
        calculation_services: Dict[PaymentCategory, CalculationService],
        assistant_client: Optional[AssistantClient] = None,
    ):
        self.sessions = sessions
        self.flow = flow
        self.calculation_services = calculation_services
        self.assistant_client = assistant_client

    def start_session(self, session_id: Optional[str] = None) -> TurnResult:
        state = self.sessions.create_session(session_id)
        return TurnResult(state=state, action=self.flow.current_action(state))

    def get_state(self, session_id: str) -> ConversationState:
        return self.sessions.get(session_id)

    def end_session(self, session_id: str) -> None:
        self.sessions.end(session_id)

    async def handle_turn(
        self,
        session_id: str,
        user_input: Any = None,
        assistant_reply: Optional[str] = None,
        conversation_handle: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> TurnResult:
        """
        Process one user turn.

        Flow:
        1. Hold the session lock (concurrent turns are rejected)
        2. Fetch the assistant reply when only a conversation handle is given
        3. Advance the dialog
        4. Run the category's calculation on RequestCalculation, reusing a
           cached result when the collected fields are unchanged
        5. Save the new state

        Nothing is saved when steps 2 or 4 fail.

        Raises:
            SessionNotFoundError: Unknown session id
            SessionBusyError: Another turn is in progress
            ExternalCollaboratorError: Assistant reply unavailable
            ConfigurationError: Discount configuration missing
        """
        async with self.sessions.turn(session_id):
            state = self.sessions.get(session_id)

            if assistant_reply is None and conversation_handle:
                if self.assistant_client is None:
                    raise ExternalCollaboratorError("No assistant client configured")
                assistant_reply = await self.assistant_client.get_latest_reply(conversation_handle, timeout=timeout)

            previous_step = state.current_step
            outcome = self.flow.advance(state, user_input, assistant_reply)
            calculated = False
            if isinstance(outcome.action, RequestCalculation):
                outcome, calculated = self._calculate(outcome)

            self.sessions.save(outcome.state)
            log_turn(session_id, previous_step.value, outcome.state.current_step.value, type(outcome.action).__name__)
            return TurnResult(state=outcome.state, action=outcome.action, calculated=calculated)

    def _calculate(self, outcome: FlowOutcome) -> Tuple[FlowOutcome, bool]:
        state = outcome.state
        request: RequestCalculation = outcome.action
        fingerprint = state.collected.fingerprint()

        if state.last_result is not None and state.result_fingerprint == fingerprint:
            return FlowOutcome(state, Terminal(state.last_result)), False

        service = self.calculation_services[request.category]
        try:
            result = service.calculate(request.payload)
        except ValidationError as e:
            logger.info(
                "Calculation rejected collected details",
                extra={"session_id": state.session_id, "fields": [v.field for v in e.violations]},
            )
            self.flow.messages.record_system(state, STANDARD_MESSAGES["CALCULATION_FAILED"])
            return self.flow.route_to_violations(state, e.violations), False

        state.last_result = result
        state.result_fingerprint = fingerprint
        self.flow.messages.record_system(state, self.flow.messages.offer_summary(result))
        return FlowOutcome(state, Terminal(result)), True
