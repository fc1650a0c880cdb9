"""Data access layer for sessions and offer quotes"""

from typing import Any, List, Optional
from sqlalchemy.orm import Session
from settlement_gateway.infrastructure.database.models import ConversationSessionRecord, OfferQuote
from settlement_gateway.domain.models import CalculationResult


class SqlSessionStore:
    """SessionStore backed by the conversation_session table"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[Any]:
        record = self.db.get(ConversationSessionRecord, key)
        return record.document if record is not None else None

    def set(self, key: str, value: Any) -> None:
        record = self.db.get(ConversationSessionRecord, key)
        if record is None:
            self.db.add(ConversationSessionRecord(session_key=key, document=value))
        else:
            record.document = value
        self.db.commit()

    def delete(self, key: str) -> None:
        record = self.db.get(ConversationSessionRecord, key)
        if record is not None:
            self.db.delete(record)
            self.db.commit()


class QuoteRepository:
    """Repository for issued offer quotes"""

    def __init__(self, db: Session):
        self.db = db

    def create_quote(self, result: CalculationResult, session_id: Optional[str] = None) -> OfferQuote:
        """Persist an offer range (public result fields only)"""
        db_quote = OfferQuote(
            session_id=session_id,
            category=result.category.value,
            minimum_offer=result.minimum_offer,
            maximum_offer=result.maximum_offer,
            effective_rate=result.effective_rate,
            generated_at=result.generated_at,
        )
        self.db.add(db_quote)
        self.db.flush()  # Get ID without committing
        return db_quote

    def get_quotes(self, session_id: Optional[str] = None, limit: int = 20) -> List[OfferQuote]:
        """Fetch recent quotes, optionally for one session"""
        query = self.db.query(OfferQuote)
        if session_id is not None:
            query = query.filter(OfferQuote.session_id == session_id)
        return query.order_by(OfferQuote.generated_at.desc()).limit(limit).all()
