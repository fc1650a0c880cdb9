"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union


class LumpSumPaymentSchema(BaseModel):
    """One dated lump sum in a Lump Sum request"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    amount: Optional[Union[Decimal, str]] = None
    payment_date: Optional[str] = Field(default=None, alias="date")


class CalculateRequest(BaseModel):
    """
    Request body for POST /v1/calculate.

    Values are checked by the payment validator, not here. Only JSON type
    mismatches are rejected at this layer. With lumpSumPayments, paymentMode
    ("Lump Sum") is the only other required field.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    amount: Optional[Union[Decimal, str]] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    payment_mode: Optional[str] = Field(default=None, alias="paymentMode")
    increase_rate: Optional[Union[Decimal, str]] = Field(default=None, alias="increaseRate")
    is_lcp: bool = Field(default=False, alias="isLCP")
    lcp_keys: Optional[List[str]] = Field(default=None, alias="lcpKeys")
    lump_sum_payments: Optional[List[LumpSumPaymentSchema]] = Field(default=None, alias="lumpSumPayments")
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class OfferResponse(BaseModel):
    """Public offer range"""

    model_config = ConfigDict(populate_by_name=True)

    category: str
    minimum_offer: float = Field(..., alias="minimumOffer")
    maximum_offer: float = Field(..., alias="maximumOffer")
    effective_rate: float = Field(..., alias="effectiveRate")
    generated_at: datetime = Field(..., alias="generatedAt")


class FieldErrorSchema(BaseModel):
    """Single field violation"""

    field: str
    message: str


class HistoryEntrySchema(BaseModel):
    """One transcript line"""

    role: str
    text: str
    timestamp: str


class SessionResponse(BaseModel):
    """Conversation state and what the user is being asked for"""

    session_id: str
    current_step: str
    prompt: str
    errors: List[FieldErrorSchema] = []
    offer: Optional[OfferResponse] = None
    collected: Dict[str, Any]
    unrecognized_replies: int = 0
    history: List[HistoryEntrySchema] = []


class TurnRequest(BaseModel):
    """Request body for POST /v1/sessions/{session_id}/turns"""

    user_input: Optional[Union[str, Dict[str, Any]]] = None
    assistant_reply: Optional[str] = None
    conversation_handle: Optional[str] = Field(default=None, min_length=1)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class TurnResponse(SessionResponse):
    """Response for POST /v1/sessions/{session_id}/turns"""

    calculated: bool = False


class OfferHistoryItem(OfferResponse):
    """Single issued quote"""

    quote_id: str = Field(..., alias="quoteId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class OfferHistoryResponse(BaseModel):
    """Response for GET /v1/offers/history"""

    session_id: Optional[str] = None
    offers: List[OfferHistoryItem]


class AssistantMessageRequest(BaseModel):
    """Request body for POST /v1/assistant/{session_id}/messages"""

    text: str
    flow_type: Optional[str] = None
    step: Optional[str] = None
    conversation_handle: Optional[str] = None


class WelcomeRequest(BaseModel):
    """Request body for POST /v1/assistant/{session_id}/welcome"""

    flow_type: Optional[str] = None
    step: Optional[str] = None


class AssistantMessageSchema(BaseModel):
    """Assistant panel message"""

    id: str
    text: str
    sender: str
    timestamp: datetime
    step: Optional[str] = None
    flow_type: Optional[str] = None
    is_welcome: bool = False
    is_error: bool = False
    is_bot: bool = False


class AssistantMessagesResponse(BaseModel):
    """Assistant transcript for a session"""

    session_id: str
    messages: List[AssistantMessageSchema]
