"""
Request dependencies.

WHAT: Access to app-scoped components and the participant token header
WHY: Endpoints stay free of globals; components are built once in create_app
HOW: FastAPI dependencies reading app.state
"""

from typing import Optional

from fastapi import Header, Request

from ..core.config import Settings
from ..core.database import Database
from ..services.orchestrator import NegotiationOrchestrator
from ..utils.exceptions import ValidationException


def get_orchestrator(request: Request) -> NegotiationOrchestrator:
    return request.app.state.orchestrator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_provider(request: Request):
    """Configured LLM provider, or None when drafting uses templates only."""
    return request.app.state.provider


def participant_token(x_participant_token: Optional[str] = Header(default=None)) -> str:
    if not x_participant_token:
        raise ValidationException(
            "X-Participant-Token header is required",
            field_errors=[{"field": "X-Participant-Token", "msg": "missing"}]
        )
    return x_participant_token
