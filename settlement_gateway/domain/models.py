"""Domain models - pure Python dataclasses representing business entities"""

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class PaymentCategory(str, Enum):
    """Valuation category of a payment stream"""

    GUARANTEED = "guaranteed"
    LCP = "lcp"


class PaymentMode(str, Enum):
    """Payment frequency"""

    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUAL = "Semi-Annual"
    ANNUAL = "Annual"
    LUMP_SUM = "Lump Sum"

    @property
    def months_per_payment(self) -> Optional[int]:
        """Months between scheduled payments (None for a single lump sum)"""
        return _MONTHS_PER_PAYMENT[self]

    @property
    def periods_per_year(self) -> int:
        """Compounding frequency used to convert the annual discount rate"""
        return _PERIODS_PER_YEAR[self]

    @classmethod
    def parse(cls, value: Any) -> "PaymentMode":
        """Resolve a user- or client-supplied label, e.g. "semiannually" or "lump sum"."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError("payment mode must be text")
        key = "".join(ch for ch in value.lower() if ch.isalpha())
        if key in _MODE_ALIASES:
            return _MODE_ALIASES[key]
        raise ValueError(f"unrecognized payment mode: {value!r}")


_MONTHS_PER_PAYMENT = {
    PaymentMode.MONTHLY: 1,
    PaymentMode.QUARTERLY: 3,
    PaymentMode.SEMI_ANNUAL: 6,
    PaymentMode.ANNUAL: 12,
    PaymentMode.LUMP_SUM: None,
}

# Lump sums are discounted monthly
_PERIODS_PER_YEAR = {
    PaymentMode.MONTHLY: 12,
    PaymentMode.QUARTERLY: 4,
    PaymentMode.SEMI_ANNUAL: 2,
    PaymentMode.ANNUAL: 1,
    PaymentMode.LUMP_SUM: 12,
}

_MODE_ALIASES = {
    "monthly": PaymentMode.MONTHLY,
    "month": PaymentMode.MONTHLY,
    "quarterly": PaymentMode.QUARTERLY,
    "quarter": PaymentMode.QUARTERLY,
    "semiannual": PaymentMode.SEMI_ANNUAL,
    "semiannually": PaymentMode.SEMI_ANNUAL,
    "biannual": PaymentMode.SEMI_ANNUAL,
    "biannually": PaymentMode.SEMI_ANNUAL,
    "annual": PaymentMode.ANNUAL,
    "annually": PaymentMode.ANNUAL,
    "yearly": PaymentMode.ANNUAL,
    "lumpsum": PaymentMode.LUMP_SUM,
}


class Step(str, Enum):
    """Guided dialog steps, in conversation order"""

    PAYMENT_TYPE = "payment-type"
    PAYMENT_MODE = "payment-mode"
    ANNUAL_INCREASE = "annual-increase"
    LIFE_CONTINGENT = "life-contingent"
    PAYMENT_AMOUNT = "payment-amount"
    PAYMENT_DATES = "payment-dates"
    REVIEW = "review"
    OFFER = "offer"


@dataclass(frozen=True)
class FieldError:
    """Single field-scoped validation failure"""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class LumpSumPayment:
    """One dated lump sum"""

    amount: Decimal
    payment_date: date


@dataclass(frozen=True)
class PaymentStream:
    """
    Validated payment stream; only built by a validator.

    With lump_sum_payments the stream is those dated payments alone: amount
    is their total and start_date/end_date span the earliest and latest.
    """

    category: PaymentCategory
    amount: Decimal
    payment_mode: PaymentMode
    start_date: date
    end_date: date
    annual_increase_rate: Decimal = Decimal("0")
    life_contingent_keys: Tuple[str, ...] = ()
    lump_sum_payments: Tuple[LumpSumPayment, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating candidate payment details"""

    ok: bool
    violations: Tuple[FieldError, ...] = ()
    stream: Optional[PaymentStream] = None


@dataclass(frozen=True, repr=False)
class DiscountConfiguration:
    """Confidential pricing inputs, in percent. Server-side only."""

    base_rate: Decimal
    spread: Decimal
    category_adjustment: Decimal
    spread_reduction: Decimal

    def __repr__(self) -> str:
        return "DiscountConfiguration(<redacted>)"


@dataclass(frozen=True)
class RateBracket:
    """Per-period discount rates (percent) for the two quotes"""

    minimum_offer_rate: Decimal  # full spread, worst case for the seller
    maximum_offer_rate: Decimal  # reduced spread


@dataclass(frozen=True)
class CalculationRequest:
    """Validated stream paired with its resolved configuration"""

    stream: PaymentStream
    configuration: DiscountConfiguration


@dataclass(frozen=True)
class CalculationResult:
    """Public offer result, safe to return to clients"""

    category: PaymentCategory
    minimum_offer: Decimal
    maximum_offer: Decimal
    effective_rate: Decimal
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "minimum_offer": str(self.minimum_offer),
            "maximum_offer": str(self.maximum_offer),
            "effective_rate": str(self.effective_rate),
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalculationResult":
        return cls(
            category=PaymentCategory(data["category"]),
            minimum_offer=Decimal(data["minimum_offer"]),
            maximum_offer=Decimal(data["maximum_offer"]),
            effective_rate=Decimal(data["effective_rate"]),
            generated_at=datetime.fromisoformat(data["generated_at"]),
        )


@dataclass(frozen=True)
class OfferComputation:
    """Internal calculation detail; never leaves the service layer"""

    category: PaymentCategory
    rates: RateBracket
    minimum_present_value: float
    maximum_present_value: float
    payment_count: int
    minimum_offer: Decimal
    maximum_offer: Decimal

    def to_result(self, generated_at: datetime) -> CalculationResult:
        return CalculationResult(
            category=self.category,
            minimum_offer=self.minimum_offer,
            maximum_offer=self.maximum_offer,
            effective_rate=self.rates.minimum_offer_rate,
            generated_at=generated_at,
        )


@dataclass
class CollectedFields:
    """Partial payment stream gathered during the conversation"""

    category: Optional[PaymentCategory] = None
    payment_mode: Optional[PaymentMode] = None
    annual_increase_rate: Optional[Decimal] = None
    life_contingent_keys: Optional[List[str]] = None
    amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value if self.category else None,
            "payment_mode": self.payment_mode.value if self.payment_mode else None,
            "annual_increase_rate": _str_or_none(self.annual_increase_rate),
            "life_contingent_keys": list(self.life_contingent_keys) if self.life_contingent_keys is not None else None,
            "amount": _str_or_none(self.amount),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectedFields":
        return cls(
            category=PaymentCategory(data["category"]) if data.get("category") else None,
            payment_mode=PaymentMode(data["payment_mode"]) if data.get("payment_mode") else None,
            annual_increase_rate=_decimal_or_none(data.get("annual_increase_rate")),
            life_contingent_keys=data.get("life_contingent_keys"),
            amount=_decimal_or_none(data.get("amount")),
            start_date=date.fromisoformat(data["start_date"]) if data.get("start_date") else None,
            end_date=date.fromisoformat(data["end_date"]) if data.get("end_date") else None,
        )

    def to_raw(self) -> Dict[str, Any]:
        """Raw calculation input as accepted by the calculation services"""
        return {
            "amount": self.amount,
            "payment_mode": self.payment_mode,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "annual_increase_rate": self.annual_increase_rate,
            "life_contingent_keys": list(self.life_contingent_keys or []),
        }

    def fingerprint(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


@dataclass(frozen=True)
class HistoryEntry:
    """One transcript line"""

    role: str  # "user" | "assistant" | "system"
    text: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "HistoryEntry":
        return cls(role=data["role"], text=data["text"], timestamp=datetime.fromisoformat(data["timestamp"]))


@dataclass
class ConversationState:
    """Per-session dialog state, owned by exactly one session"""

    session_id: str
    current_step: Step = Step.PAYMENT_TYPE
    collected: CollectedFields = field(default_factory=CollectedFields)
    history: List[HistoryEntry] = field(default_factory=list)
    unrecognized_replies: int = 0
    last_result: Optional[CalculationResult] = None
    result_fingerprint: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def copy(self) -> "ConversationState":
        return replace(
            self,
            collected=replace(
                self.collected,
                life_contingent_keys=(
                    list(self.collected.life_contingent_keys)
                    if self.collected.life_contingent_keys is not None
                    else None
                ),
            ),
            history=list(self.history),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "current_step": self.current_step.value,
            "collected": self.collected.to_dict(),
            "history": [entry.to_dict() for entry in self.history],
            "unrecognized_replies": self.unrecognized_replies,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "result_fingerprint": self.result_fingerprint,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationState":
        return cls(
            session_id=data["session_id"],
            current_step=Step(data["current_step"]),
            collected=CollectedFields.from_dict(data.get("collected") or {}),
            history=[HistoryEntry.from_dict(entry) for entry in data.get("history", [])],
            unrecognized_replies=data.get("unrecognized_replies", 0),
            last_result=CalculationResult.from_dict(data["last_result"]) if data.get("last_result") else None,
            result_fingerprint=data.get("result_fingerprint"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class Prompt:
    """Ask the user for the given step, optionally with field errors"""

    step: Step
    text: str
    errors: Tuple[FieldError, ...] = ()


@dataclass(frozen=True)
class RequestCalculation:
    """All fields collected and confirmed; calculation should run"""

    category: PaymentCategory
    payload: Dict[str, Any]


@dataclass(frozen=True)
class Terminal:
    """Calculation finished; the conversation reached its offer"""

    result: CalculationResult


FlowAction = Union[Prompt, RequestCalculation, Terminal]


@dataclass(frozen=True)
class FlowOutcome:
    """Result of advancing the dialog by one turn"""

    state: ConversationState
    action: FlowAction


def _str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _decimal_or_none(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None
