"""
Pydantic API schemas for the negotiation endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization at the HTTP boundary
HOW: Pydantic v2 models with field constraints and cross-field validators
"""

from typing import Optional, List, Literal
from pydantic import BaseModel, Field, model_validator


UrgencyLevel = Literal["low", "medium", "high"]


# ========== Deal publication ==========

class CreateDealRequest(BaseModel):
    """Seller publishes a product with private terms."""
    owner_id: str = Field(..., min_length=1, max_length=100, description="Owner (seller) identity")
    title: str = Field(..., min_length=1, max_length=200, description="Product title")
    description: Optional[str] = Field(None, max_length=5000, description="Product description")
    public_price: float = Field(..., ge=0, description="Listed public price")
    image_url: Optional[str] = Field(None, max_length=500, description="Product image reference")
    seller_initial: float = Field(..., gt=0, description="Seller opening price")
    seller_min: float = Field(..., gt=0, description="Seller private minimum")
    seller_urgency: UrgencyLevel = Field("medium", description="How pressed the seller is to close")

    @model_validator(mode='after')
    def validate_seller_bounds(self):
        """Ensure seller_min <= seller_initial."""
        if self.seller_min > self.seller_initial:
            raise ValueError(
                f"seller_min ({self.seller_min}) must not exceed seller_initial ({self.seller_initial})"
            )
        return self


class CreateDealResponse(BaseModel):
    """Deal id plus one capability token per role."""
    deal_id: str
    status: str
    seller_token: str
    buyer_token: str


class DealSummary(BaseModel):
    """Row of the owner dashboard."""
    deal_id: str
    title: str
    public_price: float
    status: str
    created_at: str
    updated_at: str


class DealListResponse(BaseModel):
    deals: List[DealSummary]
    total: int


# ========== Buyer join ==========

class BuyerTermsRequest(BaseModel):
    """Buyer bounds submitted on join."""
    buyer_max: float = Field(..., gt=0, description="Buyer private maximum")
    buyer_initial_offer: float = Field(..., gt=0, description="Buyer opening offer")
    buyer_urgency: UrgencyLevel = Field("medium", description="How pressed the buyer is to close")

    @model_validator(mode='after')
    def validate_buyer_bounds(self):
        """Ensure buyer_initial_offer <= buyer_max."""
        if self.buyer_initial_offer > self.buyer_max:
            raise ValueError(
                f"buyer_initial_offer ({self.buyer_initial_offer}) must not exceed buyer_max ({self.buyer_max})"
            )
        return self


class BuyerTermsResponse(BaseModel):
    deal_id: str
    status: str
    buyer_max: float
    buyer_initial_offer: float
    buyer_urgency: str


# ========== Transcript ==========

class MessageCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000, description="Chat message text")


class MessageResponse(BaseModel):
    id: str
    sender_role: Literal["buyer", "seller", "mediator"]
    content: str
    created_at: str


class MessageListResponse(BaseModel):
    deal_id: str
    messages: List[MessageResponse]


# ========== Offer protocol ==========

class ProposeResponse(BaseModel):
    """Result of a propose request."""
    pending_seller: bool
    no_zone: bool
    proposed_price: Optional[float] = None
    offer_id: Optional[str] = None
    created: bool = False
    message: Optional[str] = None


class RespondRequest(BaseModel):
    """Answer to the live offer. Values are validated by the orchestrator."""
    role: str = Field(..., description="'buyer' or 'seller'")
    action: str = Field(..., description="'accept' or 'reject'")


class RespondResponse(BaseModel):
    ok: bool
    deal_status: str
    buyer_status: Optional[str] = None
    seller_status: Optional[str] = None
    closed: bool = False
    reopened: bool = False
    notices: List[str] = Field(default_factory=list)


class AdjustMinRequest(BaseModel):
    new_min: float = Field(..., gt=0, description="New current minimum for the seller")


class AdjustMinResponse(BaseModel):
    ok: bool
    deal_status: str
    seller_min_current: float


# ========== Deal view ==========

class ProductView(BaseModel):
    title: str
    description: Optional[str] = None
    public_price: float
    image_url: Optional[str] = None


class OfferView(BaseModel):
    id: str
    proposed_price: float
    rationale: Optional[str] = None
    buyer_status: Optional[str] = None
    seller_status: Optional[str] = None
    created_at: str
    live: bool


class DealView(BaseModel):
    """Deal as seen by one participant; terms hold only the viewer's side."""
    deal_id: str
    role: Literal["buyer", "seller"]
    status: str
    product: ProductView
    terms: dict
    latest_offer: Optional[OfferView] = None
    messages: List[MessageResponse]


class ParticipantResponse(BaseModel):
    deal_id: str
    role: Literal["buyer", "seller"]
    deal: DealView
