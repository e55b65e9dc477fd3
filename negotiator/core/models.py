"""
ORM models for negotiation persistence.

WHAT: SQLAlchemy models for deals, terms, offers, transcript and tokens
WHY: All negotiation state lives in the shared store, never in process memory
HOW: Declarative models with enum columns, CHECK constraints and indexes
"""

from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text,
    ForeignKey, CheckConstraint, UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from .database import Base


def _uuid() -> str:
    return str(uuid4())


# Enums for status fields
class DealStatus(str, enum.Enum):
    """Deal lifecycle status values."""
    ACTIVE = "active"
    PENDING_SELLER = "pending_seller"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Urgency(str, enum.Enum):
    """How pressed a party is to close."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ParticipantRole(str, enum.Enum):
    """Roles that can hold a participant token and answer offers."""
    BUYER = "buyer"
    SELLER = "seller"


class SenderRole(str, enum.Enum):
    """Transcript authors."""
    BUYER = "buyer"
    SELLER = "seller"
    MEDIATOR = "mediator"


class OfferAction(str, enum.Enum):
    """Answer a party gives to an offer."""
    ACCEPT = "accept"
    REJECT = "reject"


class Deal(Base):
    """
    Deal table - one negotiation session over a single item.

    WHAT: Product snapshot, owner and lifecycle status
    WHY: Status is the single coordination point between concurrent requests
    HOW: Status is only written through DealStateMachine conditional updates
    """
    __tablename__ = "deals"

    id = Column(String(36), primary_key=True, default=_uuid)
    status = Column(SQLEnum(DealStatus), nullable=False, default=DealStatus.ACTIVE)
    owner_id = Column(String(100), nullable=False)
    product_title = Column(String(200), nullable=False)
    product_description = Column(Text, nullable=True)
    product_price_public = Column(Float, nullable=False)
    product_image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    terms = relationship("DealTerms", back_populates="deal", uselist=False, cascade="all, delete-orphan")
    offers = relationship("Offer", back_populates="deal", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="deal", cascade="all, delete-orphan")
    participants = relationship("DealParticipant", back_populates="deal", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("product_price_public >= 0", name="check_public_price_non_negative"),
        Index("idx_deal_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<Deal(id={self.id}, title={self.product_title}, status={self.status})>"


class DealTerms(Base):
    """
    DealTerms table - exactly one per deal.

    WHAT: Seller and buyer bounds plus urgencies
    WHY: Input of the heuristic; each side owns its own fields
    HOW: Unique FK to deals; buyer columns stay NULL until the buyer joins
    """
    __tablename__ = "deal_terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    seller_initial = Column(Float, nullable=False)
    seller_min = Column(Float, nullable=False)
    seller_min_current = Column(Float, nullable=False)
    seller_urgency = Column(SQLEnum(Urgency), nullable=False, default=Urgency.MEDIUM)
    buyer_max = Column(Float, nullable=True)
    buyer_initial_offer = Column(Float, nullable=True)
    buyer_urgency = Column(SQLEnum(Urgency), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("deal_id", name="unique_terms_per_deal"),
        CheckConstraint("seller_min > 0", name="check_seller_min_positive"),
        CheckConstraint("seller_min <= seller_initial", name="check_seller_min_le_initial"),
        CheckConstraint("seller_min_current > 0", name="check_seller_min_current_positive"),
        CheckConstraint("buyer_max IS NULL OR buyer_max > 0", name="check_buyer_max_positive"),
        CheckConstraint(
            "buyer_initial_offer IS NULL OR buyer_initial_offer > 0",
            name="check_buyer_initial_positive"
        ),
    )

    deal = relationship("Deal", back_populates="terms")

    def __repr__(self):
        return f"<DealTerms(deal={self.deal_id}, min_current={self.seller_min_current}, buyer_max={self.buyer_max})>"


class Offer(Base):
    """
    Offer table - one row per generated counter-offer.

    WHAT: Proposed price with independent buyer/seller answers
    WHY: Append-only history; a rejected offer stays on record
    HOW: Answers are written by compare-and-set in OfferLedger
    """
    __tablename__ = "offers"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, default=_uuid)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    proposed_price = Column(Float, nullable=False)
    rationale = Column(Text, nullable=True)
    buyer_status = Column(SQLEnum(OfferAction), nullable=True)
    seller_status = Column(SQLEnum(OfferAction), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("proposed_price > 0", name="check_offer_price_positive"),
        Index("idx_offer_deal_seq", "deal_id", "seq"),
    )

    deal = relationship("Deal", back_populates="offers")

    def __repr__(self):
        return f"<Offer(id={self.id}, price=${self.proposed_price}, buyer={self.buyer_status}, seller={self.seller_status})>"


class Message(Base):
    """
    Message table - append-only negotiation transcript.

    WHAT: Buyer, seller and mediator entries in order
    WHY: Shared history and context for message drafting
    HOW: Never updated or deleted; ordered by insertion sequence
    """
    __tablename__ = "messages"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, default=_uuid)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    sender_role = Column(SQLEnum(SenderRole), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_message_deal_created", "deal_id", "created_at"),
    )

    deal = relationship("Deal", back_populates="messages")

    def __repr__(self):
        return f"<Message(deal={self.deal_id}, sender={self.sender_role})>"


class DealParticipant(Base):
    """
    DealParticipant table - capability tokens.

    WHAT: Opaque token bound to (deal, role)
    WHY: Authorize actions without full authentication
    HOW: One token per role per deal
    """
    __tablename__ = "deal_participants"

    token = Column(String(64), primary_key=True)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    role = Column(SQLEnum(ParticipantRole), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("deal_id", "role", name="unique_role_per_deal"),
    )

    deal = relationship("Deal", back_populates="participants")

    def __repr__(self):
        return f"<DealParticipant(deal={self.deal_id}, role={self.role})>"
