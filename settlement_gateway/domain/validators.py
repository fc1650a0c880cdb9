"""Validation of collected payment details for each payment category"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from settlement_gateway.domain.models import (
    FieldError,
    LumpSumPayment,
    PaymentCategory,
    PaymentMode,
    PaymentStream,
    ValidationResult,
)
from settlement_gateway.utils.date_utils import add_months

MAX_PAYMENT_AMOUNT = Decimal("10000000")
MAX_INCREASE_RATE = Decimal("100")
MAX_PERIOD_YEARS = 40

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


# Coercion helpers raise ValueError with a user-facing message.

def parse_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError("Payment amount must be a number")
    if isinstance(value, str):
        value = value.strip().replace(",", "").replace("$", "")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError("Payment amount must be a number") from e
    if not amount.is_finite():
        raise ValueError("Payment amount must be a number")
    return amount


def parse_rate(value: Any) -> Decimal:
    """Percent value; None and "none" mean no increase"""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError("Annual increase must be a percentage")
    if isinstance(value, str):
        text = value.strip().lower().rstrip("%").strip()
        if text in ("", "none", "no", "n/a", "zero"):
            return Decimal("0")
        value = text
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError("Annual increase must be a percentage") from e
    if not rate.is_finite():
        raise ValueError("Annual increase must be a percentage")
    return rate


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Dates must be given as YYYY-MM-DD")
    text = value.strip()
    match = _US_DATE.match(text)
    try:
        if match:
            month, day, year = (int(part) for part in match.groups())
            return date(year, month, day)
        return date.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"Unrecognized date: {text!r}") from e


def parse_keys(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValueError("Life-contingent keys must be a list of identifiers")
    keys = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError("Life-contingent keys must be text")
        if item.strip():
            keys.append(item.strip())
    return keys


def _read(candidate: Any, name: str) -> Any:
    if isinstance(candidate, Mapping):
        return candidate.get(name)
    return getattr(candidate, name, None)


class PaymentStreamValidator:
    """
    Shared validation pipeline. Subclasses pick the category and the
    life-contingent key rule.

    Order: structural checks short-circuit (presence and types), then domain
    checks accumulate (dates and amount, increase bound, payment mode).
    """

    category: PaymentCategory = PaymentCategory.GUARANTEED

    def validate(self, candidate: Any) -> ValidationResult:
        """Never raises; every input shape yields a ValidationResult"""
        if candidate is None:
            return ValidationResult(ok=False, violations=(FieldError("payment", "Payment details are required"),))
        if _read(candidate, "lump_sum_payments"):
            return self._validate_dated_lump_sums(candidate)

        values, structural = self._coerce(candidate)
        if structural:
            return ValidationResult(ok=False, violations=tuple(structural))

        violations: List[FieldError] = []
        violations.extend(self.check_dates(values["start_date"], values["end_date"]))
        violations.extend(self.check_amount(values["amount"]))
        violations.extend(self.check_increase(values["annual_increase_rate"]))
        mode, mode_errors = self.check_mode(values["payment_mode"])
        violations.extend(mode_errors)
        if violations:
            return ValidationResult(ok=False, violations=tuple(violations))

        stream = PaymentStream(
            category=self.category,
            amount=values["amount"],
            payment_mode=mode,
            start_date=values["start_date"],
            end_date=values["end_date"],
            annual_increase_rate=values["annual_increase_rate"],
            life_contingent_keys=tuple(values["life_contingent_keys"]),
        )
        return ValidationResult(ok=True, stream=stream)

    def _validate_dated_lump_sums(self, candidate: Any) -> ValidationResult:
        """
        Lump Sum mode paid as several dated payments.

        Only payment_mode and the payments are read; amount, dates and the
        annual increase of a regular stream do not apply.
        """
        raw_mode = _read(candidate, "payment_mode")
        errors: List[FieldError] = []
        if raw_mode is None or (isinstance(raw_mode, str) and not raw_mode.strip()):
            errors.append(FieldError("payment_mode", f"{_LABELS['payment_mode']} is required"))
        payments = self._parse_lump_sums(_read(candidate, "lump_sum_payments"), errors)
        keys = self._keys_or_error(candidate, errors)
        errors.extend(self.check_keys_presence(keys))
        if errors:
            return ValidationResult(ok=False, violations=tuple(errors))

        violations: List[FieldError] = []
        mode, mode_errors = self.check_mode(raw_mode)
        violations.extend(mode_errors)
        if mode is not None and mode != PaymentMode.LUMP_SUM:
            violations.append(FieldError("lump_sum_payments", "Dated lump-sum payments require the Lump Sum payment mode"))
        violations.extend(self.check_lump_sums(payments))
        if violations:
            return ValidationResult(ok=False, violations=tuple(violations))

        ordered = tuple(sorted(payments, key=lambda payment: payment.payment_date))
        stream = PaymentStream(
            category=self.category,
            amount=sum((payment.amount for payment in ordered), Decimal("0")),
            payment_mode=mode,
            start_date=ordered[0].payment_date,
            end_date=ordered[-1].payment_date,
            life_contingent_keys=tuple(keys or []),
            lump_sum_payments=ordered,
        )
        return ValidationResult(ok=True, stream=stream)

    def _parse_lump_sums(self, raw: Any, errors: List[FieldError]) -> List[LumpSumPayment]:
        if not isinstance(raw, (list, tuple)):
            errors.append(FieldError("lump_sum_payments", "Lump-sum payments must be a list of amounts and dates"))
            return []
        payments = []
        for index, entry in enumerate(raw, start=1):
            try:
                amount = parse_amount(_read(entry, "amount"))
                payment_date = parse_date(_read(entry, "payment_date"))
            except ValueError as e:
                errors.append(FieldError("lump_sum_payments", f"Payment {index}: {e}"))
                continue
            payments.append(LumpSumPayment(amount=amount, payment_date=payment_date))
        return payments

    def _coerce(self, candidate: Any) -> Tuple[dict, List[FieldError]]:
        errors: List[FieldError] = []
        values: dict = {}

        for name in ("amount", "payment_mode", "start_date", "end_date"):
            raw = _read(candidate, name)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                errors.append(FieldError(name, f"{_LABELS[name]} is required"))

        if errors:
            errors.extend(self.check_keys_presence(self._keys_or_error(candidate, [])))
            return values, errors

        for name, parser in (("amount", parse_amount), ("start_date", parse_date), ("end_date", parse_date)):
            try:
                values[name] = parser(_read(candidate, name))
            except ValueError as e:
                errors.append(FieldError(name, str(e)))
        try:
            values["annual_increase_rate"] = parse_rate(_read(candidate, "annual_increase_rate"))
        except ValueError as e:
            errors.append(FieldError("annual_increase_rate", str(e)))

        values["payment_mode"] = _read(candidate, "payment_mode")
        keys = self._keys_or_error(candidate, errors)
        values["life_contingent_keys"] = keys or []
        errors.extend(self.check_keys_presence(keys))
        return values, errors

    def _keys_or_error(self, candidate: Any, errors: List[FieldError]) -> Optional[List[str]]:
        try:
            return parse_keys(_read(candidate, "life_contingent_keys"))
        except ValueError as e:
            errors.append(FieldError("life_contingent_keys", str(e)))
            return None

    # Field-level checks, also used by the flow service at each step.

    def check_keys_presence(self, keys: Optional[List[str]]) -> List[FieldError]:
        if keys:
            return [FieldError("life_contingent_keys", "Guaranteed payments cannot carry life-contingent keys")]
        return []

    def check_amount(self, amount: Decimal) -> List[FieldError]:
        if amount <= 0:
            return [FieldError("amount", "Payment amount must be greater than zero")]
        if amount > MAX_PAYMENT_AMOUNT:
            return [FieldError("amount", "Payment amount cannot exceed $10,000,000")]
        return []

    def check_dates(self, start_date: date, end_date: date) -> List[FieldError]:
        if start_date >= end_date:
            return [FieldError("end_date", "End date must be after the start date")]
        try:
            latest_end = add_months(start_date, MAX_PERIOD_YEARS * 12)
        except OverflowError:
            # past date.max; end_date is already bounded by it
            return []
        if end_date > latest_end:
            return [FieldError("end_date", f"Payment period cannot exceed {MAX_PERIOD_YEARS} years")]
        return []

    def check_lump_sums(self, payments: List[LumpSumPayment]) -> List[FieldError]:
        violations = []
        for index, payment in enumerate(payments, start=1):
            for error in self.check_amount(payment.amount):
                violations.append(FieldError("lump_sum_payments", f"Payment {index}: {error.message}"))
        if not payments:
            return violations
        earliest = min(payment.payment_date for payment in payments)
        latest = max(payment.payment_date for payment in payments)
        try:
            latest_allowed = add_months(earliest, MAX_PERIOD_YEARS * 12)
        except OverflowError:
            return violations
        if latest > latest_allowed:
            violations.append(FieldError("lump_sum_payments", f"Payment period cannot exceed {MAX_PERIOD_YEARS} years"))
        return violations

    def check_increase(self, rate: Decimal) -> List[FieldError]:
        if rate < 0 or rate > MAX_INCREASE_RATE:
            return [FieldError("annual_increase_rate", "Annual increase must be between 0% and 100%")]
        return []

    def check_mode(self, value: Any) -> Tuple[Optional[PaymentMode], List[FieldError]]:
        try:
            return PaymentMode.parse(value), []
        except ValueError:
            return None, [FieldError("payment_mode", "Payment mode must be Monthly, Quarterly, Semi-Annual, Annual or Lump Sum")]


class GuaranteedValidator(PaymentStreamValidator):
    """Fixed-schedule payments; life-contingent keys are forbidden"""

    category = PaymentCategory.GUARANTEED


class LCPValidator(PaymentStreamValidator):
    """Life-contingent payments; at least one life-contingent key is required"""

    category = PaymentCategory.LCP

    def check_keys_presence(self, keys: Optional[List[str]]) -> List[FieldError]:
        if keys is not None and not keys:
            return [FieldError("life_contingent_keys", "At least one life-contingent key is required")]
        return []


def validator_for(category: PaymentCategory) -> PaymentStreamValidator:
    return LCPValidator() if category == PaymentCategory.LCP else GuaranteedValidator()


_LABELS = {
    "amount": "Payment amount",
    "payment_mode": "Payment mode",
    "start_date": "Start date",
    "end_date": "End date",
}
