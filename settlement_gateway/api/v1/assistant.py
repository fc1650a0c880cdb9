"""Assistant panel endpoints - transcript per session"""

from fastapi import APIRouter, Depends, Response

from settlement_gateway.api.v1.schemas import AssistantMessageRequest, AssistantMessagesResponse, WelcomeRequest
from settlement_gateway.api.dependencies import get_assistant_orchestrator
from settlement_gateway.services.assistant import AssistantOrchestrator

router = APIRouter()


def _transcript(session_id: str, messages) -> AssistantMessagesResponse:
    return AssistantMessagesResponse(session_id=session_id, messages=[m.to_dict() for m in messages])


@router.post("/assistant/{session_id}/messages", response_model=AssistantMessagesResponse)
async def send_message(
    session_id: str,
    request_body: AssistantMessageRequest,
    orchestrator: AssistantOrchestrator = Depends(get_assistant_orchestrator),
):
    """Send a user message; the reply (or a connection error notice) is appended"""
    messages = await orchestrator.send_message(
        session_id,
        request_body.text,
        flow_type=request_body.flow_type,
        step=request_body.step,
        conversation_handle=request_body.conversation_handle,
    )
    return _transcript(session_id, messages)


@router.post("/assistant/{session_id}/welcome", response_model=AssistantMessagesResponse)
def add_welcome(
    session_id: str,
    request_body: WelcomeRequest,
    orchestrator: AssistantOrchestrator = Depends(get_assistant_orchestrator),
):
    messages = orchestrator.add_welcome_message(session_id, request_body.flow_type, request_body.step)
    return _transcript(session_id, messages)


@router.get("/assistant/{session_id}/messages", response_model=AssistantMessagesResponse)
def get_messages(
    session_id: str,
    orchestrator: AssistantOrchestrator = Depends(get_assistant_orchestrator),
):
    return _transcript(session_id, orchestrator.get_messages(session_id))


@router.delete("/assistant/{session_id}/messages", status_code=204)
def clear_messages(
    session_id: str,
    orchestrator: AssistantOrchestrator = Depends(get_assistant_orchestrator),
):
    orchestrator.clear_messages(session_id)
    return Response(status_code=204)
