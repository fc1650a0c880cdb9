"""SQLAlchemy ORM models for conversation sessions and issued offer quotes"""

import uuid
from sqlalchemy import Column, DateTime, Numeric, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ConversationSessionRecord(Base):
    """Stored session document (conversation state or assistant transcript)"""

    __tablename__ = "conversation_session"

    session_key = Column(Text, primary_key=True)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class OfferQuote(Base):
    """Offer range issued to a client"""

    __tablename__ = "offer_quote"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Text, nullable=True, index=True)
    category = Column(Text, nullable=False)
    minimum_offer = Column(Numeric(14, 2), nullable=False)
    maximum_offer = Column(Numeric(14, 2), nullable=False)
    effective_rate = Column(Numeric(12, 6), nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
