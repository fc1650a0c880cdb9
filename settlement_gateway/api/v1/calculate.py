"""POST /v1/calculate - lump-sum offer range for a payment stream"""

import time
import logging
from typing import Dict
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from settlement_gateway.api.v1.schemas import CalculateRequest, OfferResponse
from settlement_gateway.api.dependencies import get_calculation_services, get_request_id
from settlement_gateway.infrastructure.database.session import get_db
from settlement_gateway.infrastructure.database.repositories import QuoteRepository
from settlement_gateway.domain.exceptions import ConfigurationError, ValidationError
from settlement_gateway.domain.models import CalculationResult, PaymentCategory
from settlement_gateway.infrastructure.observability.logging import log_offer
from settlement_gateway.services.calculation import CalculationService

router = APIRouter()

REQUIRED_FIELDS = ("amount", "start_date", "end_date", "payment_mode")
LUMP_SUM_REQUIRED_FIELDS = ("payment_mode",)


def offer_response(result: CalculationResult) -> OfferResponse:
    return OfferResponse(
        category=result.category.value,
        minimum_offer=float(result.minimum_offer),
        maximum_offer=float(result.maximum_offer),
        effective_rate=float(result.effective_rate),
        generated_at=result.generated_at,
    )


@router.post("/calculate", response_model=OfferResponse)
async def calculate_offer(
    request_body: CalculateRequest,
    request: Request,
    db: Session = Depends(get_db),
    services: Dict[PaymentCategory, CalculationService] = Depends(get_calculation_services),
):
    """
    Calculate the minimum and maximum lump-sum offer for a payment stream.

    Flow:
    1. Reject requests missing amount, dates or payment mode (only the mode
       when dated lump-sum payments are given)
    2. Validate and price through the category's calculation service
    3. Persist the issued quote
    4. Return the public offer range (never the discount configuration)
    """
    start_time = time.time()
    request_id = get_request_id(request)

    required = LUMP_SUM_REQUIRED_FIELDS if request_body.lump_sum_payments else REQUIRED_FIELDS
    for name in required:
        value = getattr(request_body, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise HTTPException(status_code=400, detail="Missing required payment details")

    category = PaymentCategory.LCP if request_body.is_lcp else PaymentCategory.GUARANTEED
    raw_input = {
        "amount": request_body.amount,
        "payment_mode": request_body.payment_mode,
        "start_date": request_body.start_date,
        "end_date": request_body.end_date,
        "annual_increase_rate": request_body.increase_rate,
        "life_contingent_keys": request_body.lcp_keys,
        "lump_sum_payments": [
            {"amount": payment.amount, "payment_date": payment.payment_date}
            for payment in request_body.lump_sum_payments or []
        ],
    }

    try:
        result = services[category].calculate(raw_input)

        QuoteRepository(db).create_quote(result, session_id=request_body.session_id)
        db.commit()

        duration_ms = (time.time() - start_time) * 1000
        log_offer(
            request_id,
            request_body.session_id,
            result.category.value,
            str(result.minimum_offer),
            str(result.maximum_offer),
            duration_ms,
        )
        return offer_response(result)

    except ValidationError as e:
        db.rollback()
        logging.warning(f"Invalid payment details: {e}", extra={"request_id": request_id})
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid payment details", "violations": [v.to_dict() for v in e.violations]},
        )

    except ConfigurationError as e:
        db.rollback()
        logging.error(f"Discount configuration error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Unable to calculate offer")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Unable to calculate offer")
