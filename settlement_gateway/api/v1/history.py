"""GET /v1/offers/history - Fetch recently issued offer quotes"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement_gateway.api.v1.schemas import OfferHistoryResponse, OfferHistoryItem
from settlement_gateway.infrastructure.database.session import get_db
from settlement_gateway.infrastructure.database.repositories import QuoteRepository

router = APIRouter()


@router.get("/offers/history", response_model=OfferHistoryResponse)
def get_offer_history(
    session_id: Optional[str] = Query(None, description="Conversation session identifier"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Retrieve recent offer quotes, newest first.

    Returns:
        Issued offer ranges, for one session when session_id is given
    """
    quotes = QuoteRepository(db).get_quotes(session_id=session_id, limit=limit)

    history_items = [
        OfferHistoryItem(
            quote_id=str(q.id),
            session_id=q.session_id,
            category=q.category,
            minimum_offer=float(q.minimum_offer),
            maximum_offer=float(q.maximum_offer),
            effective_rate=float(q.effective_rate),
            generated_at=q.generated_at,
        )
        for q in quotes
    ]

    return OfferHistoryResponse(session_id=session_id, offers=history_items)
