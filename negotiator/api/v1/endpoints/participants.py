"""
Participant token endpoint.

WHAT: Resolve a capability token to its deal, role and role-scoped view
WHY: A party opening a shared link needs to know who they are on which deal
HOW: Token lookup, then the redacted deal view for that role
"""

from fastapi import APIRouter, Depends

from ....models.api_schemas import ParticipantResponse
from ....services.orchestrator import NegotiationOrchestrator
from ...deps import get_orchestrator

router = APIRouter()


@router.get("/participants/{token}", response_model=ParticipantResponse)
def resolve_participant(
    token: str,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    participant = orchestrator.resolve_participant(token)
    view = orchestrator.get_deal_view(participant["deal_id"], participant["role"])
    return ParticipantResponse(deal_id=participant["deal_id"], role=participant["role"], deal=view)
