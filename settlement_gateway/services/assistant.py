"""Side-panel assistant - messages, canned replies, transcript storage and orchestration"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from settlement_gateway.domain.exceptions import ExternalCollaboratorError
from settlement_gateway.domain.models import PaymentCategory, Step
from settlement_gateway.infrastructure.clients.assistant import AssistantClient
from settlement_gateway.services.sessions import SessionStore
from settlement_gateway.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

CONNECTION_ERROR_TEXT = "Sorry, I'm having trouble connecting. Please try again."


@dataclass(frozen=True)
class AssistantMessage:
    """One assistant panel message"""

    id: str
    text: str
    sender: str  # "user" | "assistant"
    timestamp: datetime
    step: Optional[str] = None
    flow_type: Optional[str] = None
    is_welcome: bool = False
    is_error: bool = False
    is_bot: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender,
            "timestamp": self.timestamp.isoformat(),
            "step": self.step,
            "flow_type": self.flow_type,
            "is_welcome": self.is_welcome,
            "is_error": self.is_error,
            "is_bot": self.is_bot,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssistantMessage":
        return cls(
            id=data["id"],
            text=data["text"],
            sender=data["sender"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            step=data.get("step"),
            flow_type=data.get("flow_type"),
            is_welcome=data.get("is_welcome", False),
            is_error=data.get("is_error", False),
            is_bot=data.get("is_bot", False),
        )


class AssistantMessageService:
    """Builds panel messages"""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def _create(self, text: str, sender: str, step: Optional[str], flow_type: Optional[str], **flags) -> AssistantMessage:
        return AssistantMessage(
            id=f"msg-{uuid.uuid4().hex[:12]}",
            text=text,
            sender=sender,
            timestamp=self.clock(),
            step=step,
            flow_type=flow_type,
            **flags,
        )

    def create_user_message(self, text: str, step: Optional[str] = None, flow_type: Optional[str] = None) -> AssistantMessage:
        return self._create(text, "user", step, flow_type)

    def create_bot_message(self, text: str, step: Optional[str] = None, flow_type: Optional[str] = None) -> AssistantMessage:
        return self._create(text, "assistant", step, flow_type, is_bot=True)

    def create_error_message(self, text: str, step: Optional[str] = None, flow_type: Optional[str] = None) -> AssistantMessage:
        return self._create(text, "assistant", step, flow_type, is_error=True)

    def create_welcome_message(self, flow_type: Optional[str] = None, step: Optional[str] = None) -> AssistantMessage:
        return self._create(self.welcome_text(flow_type), "assistant", step, flow_type, is_welcome=True)

    def welcome_text(self, flow_type: Optional[str]) -> str:
        if flow_type == PaymentCategory.LCP.value:
            return (
                "Hi! I'm your Life-Contingent Payments assistant.\n\n"
                "If you have any questions about why we need your health and profile information, I can answer that for you."
            )
        return (
            "Hi! I'm your Guaranteed Payments assistant.\n\n"
            "If you have any questions about why we need information or what we need information for, I can answer that for you."
        )

    @staticmethod
    def has_welcome_message(messages: List[AssistantMessage]) -> bool:
        return any(message.is_welcome for message in messages)


class AssistantResponseService:
    """Context-aware canned replies keyed by flow type and step"""

    def reply(self, user_text: str, flow_type: Optional[str], step: Optional[str]) -> str:
        lowered = user_text.lower()
        if flow_type == PaymentCategory.GUARANTEED.value:
            return self._guaranteed_reply(lowered, step)
        if flow_type == PaymentCategory.LCP.value:
            return self._lcp_reply(lowered, step)
        return (
            f'I understand you said: "{user_text.strip()}". I\'m here to help you with this calculation step. '
            "What specific questions do you have?"
        )

    def _mode_reply(self, lowered: str, label: str) -> Optional[str]:
        if "month" in lowered:
            return f"Great! Monthly payments are very common{label}. What's your annual increase rate?"
        if "quarter" in lowered:
            return "Perfect! Quarterly payments mean you receive payments every 3 months. What's your annual increase rate?"
        if "lump sum" in lowered:
            return "Excellent! Lump sum payments are straightforward. Let's move to the next step."
        return None

    def _guaranteed_reply(self, lowered: str, step: Optional[str]) -> str:
        if step == Step.PAYMENT_MODE.value:
            return self._mode_reply(lowered, "") or (
                "I can help you with payment modes. Do you receive payments monthly, quarterly, "
                "semiannually, annually, or as a lump sum?"
            )
        if step in (Step.PAYMENT_AMOUNT.value, Step.PAYMENT_DATES.value):
            if "amount" in lowered or "payment" in lowered:
                return (
                    "Please enter the amount you usually receive for each payment. "
                    "Also, we'll need the start and end dates for the period you want to calculate."
                )
            return "For the payment amount step, I need to know how much you usually receive and the date range you want to calculate."
        if step == Step.REVIEW.value:
            return "Please review all the information you've provided. Make sure the payment amount, dates, and mode are correct before calculating."
        if step == Step.OFFER.value:
            return "Congratulations! Your guaranteed payment calculation is complete. The results show your minimum and maximum payout offers."
        return "I'm here to help you with your guaranteed payment calculation. What would you like to know?"

    def _lcp_reply(self, lowered: str, step: Optional[str]) -> str:
        if step in (Step.PAYMENT_MODE.value, Step.ANNUAL_INCREASE.value):
            return self._mode_reply(lowered, " for life-contingent settlements") or (
                "For life-contingent payments, I need to know your payment frequency and annual increase rate. "
                "This affects your life expectancy calculations."
            )
        if step == Step.LIFE_CONTINGENT.value:
            if "smok" in lowered:
                return "Smoking status is a critical factor for life-contingent calculations. What's your general health condition?"
            if "age" in lowered or "gender" in lowered:
                return (
                    "Your age and gender are important factors for life-contingent calculations as they affect "
                    "life expectancy. What's your body frame size?"
                )
            return (
                "For life-contingent payments, I need your age range, gender, body frame, weight, smoking status, "
                "general health and cardiac condition. These factors help calculate your life expectancy."
            )
        if step in (Step.PAYMENT_AMOUNT.value, Step.PAYMENT_DATES.value):
            if "date" in lowered or "amount" in lowered:
                return "Please provide the start and end dates for the payments you want to calculate, plus the payment amount."
            return "For the details step, I need the start date, end date, and payment amount for your life-contingent settlement."
        if step == Step.REVIEW.value:
            return (
                "Please review all your information carefully. Life-contingent calculations are complex and "
                "depend on accurate health and profile data."
            )
        if step == Step.OFFER.value:
            return (
                "Congratulations! Your life-contingent payment calculation is complete. The results show your "
                "minimum and maximum payout offers based on your health profile."
            )
        return (
            "I'm here to help you with your life-contingent payment calculation. This process involves health and "
            "profile factors that affect your life expectancy. What would you like to know?"
        )


class AssistantStorageService:
    """Persists panel transcripts through a SessionStore under the assistant: namespace"""

    NAMESPACE = "assistant:"

    def __init__(self, store: SessionStore):
        self.store = store

    def _key(self, session_id: str) -> str:
        return f"{self.NAMESPACE}{session_id}"

    def load_messages(self, session_id: str) -> List[AssistantMessage]:
        data = self.store.get(self._key(session_id)) or []
        return [AssistantMessage.from_dict(item) for item in data]

    def save_messages(self, session_id: str, messages: List[AssistantMessage]) -> None:
        self.store.set(self._key(session_id), [message.to_dict() for message in messages])

    def clear_messages(self, session_id: str) -> None:
        self.store.delete(self._key(session_id))


class AssistantOrchestrator:
    """Coordinates the assistant panel services"""

    def __init__(
        self,
        storage: AssistantStorageService,
        messages: Optional[AssistantMessageService] = None,
        responses: Optional[AssistantResponseService] = None,
        client: Optional[AssistantClient] = None,
    ):
        self.storage = storage
        self.messages = messages or AssistantMessageService()
        self.responses = responses or AssistantResponseService()
        self.client = client

    def get_messages(self, session_id: str) -> List[AssistantMessage]:
        return self.storage.load_messages(session_id)

    def clear_messages(self, session_id: str) -> None:
        self.storage.clear_messages(session_id)
        logger.info("Assistant transcript cleared", extra={"session_id": session_id})

    def add_welcome_message(self, session_id: str, flow_type: Optional[str] = None, step: Optional[str] = None) -> List[AssistantMessage]:
        """Append the welcome message once per transcript"""
        current = self.storage.load_messages(session_id)
        if self.messages.has_welcome_message(current):
            return current
        updated = current + [self.messages.create_welcome_message(flow_type, step)]
        self.storage.save_messages(session_id, updated)
        return updated

    async def send_message(
        self,
        session_id: str,
        text: str,
        flow_type: Optional[str] = None,
        step: Optional[str] = None,
        conversation_handle: Optional[str] = None,
    ) -> List[AssistantMessage]:
        """
        Record the user's message and the assistant's answer.

        The answer comes from the assistant API when a conversation handle is
        given, otherwise from the canned responses. A failed fetch stores the
        connection error message in place of the answer.
        """
        current = self.storage.load_messages(session_id)
        if not text.strip():
            return current

        updated = current + [self.messages.create_user_message(text, step, flow_type)]
        try:
            if conversation_handle:
                if self.client is None:
                    raise ExternalCollaboratorError("No assistant client configured")
                answer = await self.client.get_latest_reply(conversation_handle)
            else:
                answer = self.responses.reply(text, flow_type, step)
            updated.append(self.messages.create_bot_message(answer, step, flow_type))
        except ExternalCollaboratorError as e:
            logger.error(f"Assistant reply failed: {e}", extra={"session_id": session_id})
            updated.append(self.messages.create_error_message(CONNECTION_ERROR_TEXT, step, flow_type))

        self.storage.save_messages(session_id, updated)
        return updated
