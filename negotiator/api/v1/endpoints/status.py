"""
Status and health check endpoints.

WHAT: Health monitoring for the text-generation provider and database
WHY: Quick diagnostics for clients and ops
HOW: FastAPI endpoints calling provider ping and database ping
"""

import asyncio

from fastapi import APIRouter, Depends

from ....core.config import Settings
from ....core.database import Database
from ...deps import get_settings, get_database, get_provider
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _llm_status(provider, settings: Settings) -> dict:
    if provider is None:
        return {
            "available": False,
            "provider": settings.LLM_PROVIDER,
            "base_url": None,
            "models": None,
            "error": "disabled (templated mediator messages)",
        }
    status = await provider.ping()
    return {
        "available": status.available,
        "provider": settings.LLM_PROVIDER,
        "base_url": status.base_url,
        "models": status.models,
        "error": status.error,
    }


@router.get("/llm/status")
async def llm_status(
    provider=Depends(get_provider),
    settings: Settings = Depends(get_settings),
    database: Database = Depends(get_database),
):
    """
    Check provider and database status.

    Returns:
        JSON with provider status and database status
    """
    return {
        "llm": await _llm_status(provider, settings),
        "database": await asyncio.to_thread(database.ping),
    }


@router.get("/health")
async def health_check(
    provider=Depends(get_provider),
    settings: Settings = Depends(get_settings),
    database: Database = Depends(get_database),
):
    """
    Overall application health check.

    The database is required; the provider is optional because drafting
    falls back to templated messages.
    """
    llm = await _llm_status(provider, settings)
    db_status = await asyncio.to_thread(database.ping)

    if not db_status["available"]:
        overall = "unhealthy"
    elif provider is not None and not llm["available"]:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME,
        "components": {
            "llm": {"available": llm["available"], "provider": settings.LLM_PROVIDER},
            "database": {"available": db_status["available"]},
        },
    }
