"""
FastAPI application entry point.

WHAT: Application factory and wiring
WHY: Build every component once from one Settings object
HOW: create_app() builds database, provider, mediator and orchestrator,
     registers middleware, routers and handlers; lifespan opens and closes
     the store and the provider client
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings
from .core.database import Database
from .llm.provider_factory import create_provider
from .agents.mediator_agent import MediatorAgent
from .services.orchestrator import NegotiationOrchestrator
from .utils.logger import setup_logging, get_logger
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

logger = get_logger(__name__)

_FROM_SETTINGS = object()


def create_app(settings: Optional[Settings] = None, provider=_FROM_SETTINGS) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings instance; read from the environment when omitted
        provider: LLM provider override (None = templated messages only);
            built from settings.LLM_PROVIDER when omitted

    Returns:
        Configured FastAPI app
    """
    if settings is None:
        settings = Settings()
    setup_logging(settings)

    if provider is _FROM_SETTINGS:
        provider = create_provider(settings)

    database = Database(settings)
    mediator = MediatorAgent.from_settings(provider, settings)
    orchestrator = NegotiationOrchestrator(database, mediator, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        WHAT: Startup and shutdown logic
        WHY: Initialize DB, close connections cleanly
        HOW: Async context manager for FastAPI lifespan
        """
        # Startup
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        database.init()
        logger.info(
            f"Application startup complete (llm={settings.LLM_PROVIDER}, "
            f"close_on_reject={settings.CLOSE_DEAL_ON_REJECT})"
        )

        yield

        # Shutdown
        logger.info("Shutting down application")
        if provider is not None:
            await provider.close()
        database.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.provider = provider
    app.state.orchestrator = orchestrator

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Include API router
    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = Settings()
    uvicorn.run(
        "negotiator.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=_settings.DEBUG
    )
