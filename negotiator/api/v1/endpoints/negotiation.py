"""
Offer protocol endpoints.

WHAT: propose, respond and adjust-minimum for one deal
WHY: The three client actions that drive a deal through its lifecycle
HOW: Authorize the participant token, then delegate to the orchestrator
"""

import asyncio

from fastapi import APIRouter, Depends

from ....models.api_schemas import (
    ProposeResponse,
    RespondRequest,
    RespondResponse,
    AdjustMinRequest,
    AdjustMinResponse,
)
from ....core.models import ParticipantRole
from ....core.offer_ledger import parse_role, parse_action
from ....services.orchestrator import NegotiationOrchestrator
from ...deps import get_orchestrator, participant_token
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/deals/{deal_id}/propose", response_model=ProposeResponse)
async def propose(
    deal_id: str,
    token: str = Depends(participant_token),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """
    Ask the mediator for a counter-offer.

    Idempotent while an offer is pending: the live offer is returned.
    """
    role = await asyncio.to_thread(orchestrator.authorize, token, deal_id)
    logger.info(f"Propose requested on deal {deal_id} by {role.value}")
    outcome = await orchestrator.propose(deal_id)
    return ProposeResponse(
        pending_seller=outcome.pending_seller,
        no_zone=outcome.no_zone,
        proposed_price=outcome.proposed_price,
        offer_id=outcome.offer_id,
        created=outcome.created,
        message=outcome.message,
    )


@router.post("/deals/{deal_id}/offers/{offer_id}/respond", response_model=RespondResponse)
def respond(
    deal_id: str,
    offer_id: str,
    request: RespondRequest,
    token: str = Depends(participant_token),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """Accept or reject the live offer on behalf of the token's role."""
    role = parse_role(request.role)
    action = parse_action(request.action)
    orchestrator.authorize(token, deal_id, role)

    outcome = orchestrator.respond(deal_id, offer_id, role, action)
    return RespondResponse(
        ok=outcome.ok,
        deal_status=outcome.deal_status,
        buyer_status=outcome.buyer_status,
        seller_status=outcome.seller_status,
        closed=outcome.closed,
        reopened=outcome.reopened,
        notices=outcome.notices,
    )


@router.post("/deals/{deal_id}/seller-min", response_model=AdjustMinResponse)
def adjust_seller_min(
    deal_id: str,
    request: AdjustMinRequest,
    token: str = Depends(participant_token),
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """Seller moves their current minimum; the deal reopens."""
    orchestrator.authorize(token, deal_id, ParticipantRole.SELLER)
    return AdjustMinResponse(**orchestrator.adjust_seller_min(deal_id, request.new_min))
