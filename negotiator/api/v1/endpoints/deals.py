"""
Deal publication, buyer join and transcript endpoints.

WHAT: Create/list deals, submit buyer terms, read and post chat messages
WHY: Everything a party does before and around the offer protocol
HOW: Thin FastAPI handlers; the orchestrator owns validation and persistence
"""

from fastapi import APIRouter, Depends, Query, status

from ....models.api_schemas import (
    CreateDealRequest,
    CreateDealResponse,
    DealListResponse,
    BuyerTermsRequest,
    BuyerTermsResponse,
    MessageCreateRequest,
    MessageResponse,
    MessageListResponse,
)
from ....core.models import ParticipantRole
from ....services.orchestrator import NegotiationOrchestrator
from ...deps import get_orchestrator, participant_token
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/deals", response_model=CreateDealResponse, status_code=status.HTTP_201_CREATED)
def create_deal(
    request: CreateDealRequest,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """
    Publish a deal.

    Returns the deal id plus one token for the seller and one for the buyer;
    the seller shares the buyer token out of band.
    """
    result = orchestrator.create_deal(
        owner_id=request.owner_id,
        title=request.title,
        description=request.description,
        public_price=request.public_price,
        image_url=request.image_url,
        seller_initial=request.seller_initial,
        seller_min=request.seller_min,
        seller_urgency=request.seller_urgency,
    )
    return CreateDealResponse(**result)


@router.get("/deals", response_model=DealListResponse)
def list_deals(
    owner_id: str = Query(..., min_length=1, max_length=100),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """Owner dashboard, newest first."""
    deals = orchestrator.list_deals(owner_id)
    return DealListResponse(deals=deals, total=len(deals))


@router.post("/deals/{deal_id}/buyer-terms", response_model=BuyerTermsResponse)
def submit_buyer_terms(
    deal_id: str,
    request: BuyerTermsRequest,
    token: str = Depends(participant_token),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """Buyer joins with their private maximum and opening offer."""
    orchestrator.authorize(token, deal_id, ParticipantRole.BUYER)
    result = orchestrator.submit_buyer_terms(
        deal_id,
        buyer_max=request.buyer_max,
        buyer_initial_offer=request.buyer_initial_offer,
        buyer_urgency=request.buyer_urgency,
    )
    return BuyerTermsResponse(**result)


@router.get("/deals/{deal_id}/messages", response_model=MessageListResponse)
def list_messages(
    deal_id: str,
    token: str = Depends(participant_token),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    orchestrator.authorize(token, deal_id)
    return MessageListResponse(deal_id=deal_id, messages=orchestrator.list_messages(deal_id))


@router.post("/deals/{deal_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def post_message(
    deal_id: str,
    request: MessageCreateRequest,
    token: str = Depends(participant_token),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """Append a chat message; the sender role comes from the token."""
    role = orchestrator.authorize(token, deal_id)
    return MessageResponse(**orchestrator.post_message(deal_id, role, request.content))
