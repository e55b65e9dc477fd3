"""
API v1 router aggregation.

WHAT: Combine the deal, negotiation, participant and status routers
WHY: Single place to register all API routes
HOW: Every endpoint module is mounted under /api/v1 with its own tag
"""

from fastapi import APIRouter

from .endpoints import status, deals, negotiation, participants

API_PREFIX = "/api/v1"

api_router = APIRouter()

for module, tag in (
    (status, "status"),
    (deals, "deals"),
    (negotiation, "negotiation"),
    (participants, "participants"),
):
    api_router.include_router(module.router, prefix=API_PREFIX, tags=[tag])
