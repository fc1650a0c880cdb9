"""Conversation session endpoints - start, inspect, advance and end the guided dialog"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from settlement_gateway.api.v1.calculate import offer_response
from settlement_gateway.api.v1.schemas import SessionResponse, TurnRequest, TurnResponse
from settlement_gateway.api.dependencies import get_orchestrator, get_request_id
from settlement_gateway.infrastructure.database.session import get_db
from settlement_gateway.infrastructure.database.repositories import QuoteRepository
from settlement_gateway.domain.exceptions import (
    ConfigurationError,
    ExternalCollaboratorError,
    SessionBusyError,
    SessionNotFoundError,
)
from settlement_gateway.domain.models import ConversationState, FlowAction, Prompt, Terminal
from settlement_gateway.services.orchestrator import CalculatorOrchestrator

router = APIRouter()


def session_payload(orchestrator: CalculatorOrchestrator, state: ConversationState, action: FlowAction) -> dict:
    if isinstance(action, Terminal):
        prompt = orchestrator.flow.messages.offer_summary(action.result)
        offer = offer_response(action.result)
        errors = []
    else:
        prompt = action.text if isinstance(action, Prompt) else ""
        offer = None
        errors = [e.to_dict() for e in getattr(action, "errors", ())]
    return {
        "session_id": state.session_id,
        "current_step": state.current_step.value,
        "prompt": prompt,
        "errors": errors,
        "offer": offer,
        "collected": state.collected.to_dict(),
        "unrecognized_replies": state.unrecognized_replies,
        "history": [entry.to_dict() for entry in state.history],
    }


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def start_session(
    session_id: Optional[str] = Query(None, description="Resume or create this session id"),
    orchestrator: CalculatorOrchestrator = Depends(get_orchestrator),
):
    """Start a conversation, or resume it when the supplied id already exists"""
    try:
        result = orchestrator.start_session(session_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SessionResponse(**session_payload(orchestrator, result.state, result.action))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str,
    orchestrator: CalculatorOrchestrator = Depends(get_orchestrator),
):
    try:
        state = orchestrator.get_state(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse(**session_payload(orchestrator, state, orchestrator.flow.current_action(state)))


@router.delete("/sessions/{session_id}", status_code=204)
def end_session(
    session_id: str,
    orchestrator: CalculatorOrchestrator = Depends(get_orchestrator),
):
    try:
        orchestrator.end_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@router.post("/sessions/{session_id}/turns", response_model=TurnResponse)
async def submit_turn(
    session_id: str,
    request_body: TurnRequest,
    request: Request,
    db: Session = Depends(get_db),
    orchestrator: CalculatorOrchestrator = Depends(get_orchestrator),
):
    """
    Advance the dialog by one turn.

    Either assistant_reply or conversation_handle supplies the assistant's
    latest reply; with a handle the reply is polled from the assistant API.
    A newly calculated offer is recorded in the offer history.
    """
    request_id = get_request_id(request)

    try:
        result = await orchestrator.handle_turn(
            session_id,
            user_input=request_body.user_input,
            assistant_reply=request_body.assistant_reply,
            conversation_handle=request_body.conversation_handle,
            timeout=request_body.timeout_seconds,
        )
        if result.calculated and isinstance(result.action, Terminal):
            QuoteRepository(db).create_quote(result.action.result, session_id=session_id)
            db.commit()

    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")

    except SessionBusyError as e:
        logging.warning(f"Concurrent turn rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="Session is processing another turn")

    except ExternalCollaboratorError as e:
        db.rollback()
        logging.error(f"Assistant API error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=502, detail="Assistant reply unavailable, please retry")

    except ConfigurationError as e:
        db.rollback()
        logging.error(f"Discount configuration error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Unable to calculate offer")

    return TurnResponse(**session_payload(orchestrator, result.state, result.action), calculated=result.calculated)
