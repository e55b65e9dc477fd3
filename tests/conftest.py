"""
Pytest configuration and shared fixtures.

WHAT: Markers, per-test settings and database, orchestrator and deal factories
WHY: Every test runs against its own SQLite file with no ambient config
HOW: Settings built explicitly from tmp_path; components wired like create_app
"""

import pytest

from negotiator.core.config import Settings
from negotiator.core.database import Database
from negotiator.agents.mediator_agent import MediatorAgent
from negotiator.services.orchestrator import NegotiationOrchestrator


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components, real database)"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time to run"
    )


@pytest.fixture
def settings(tmp_path):
    """
    Test settings.

    WHAT: Isolated configuration per test
    WHY: No .env or environment leakage; each test gets its own store
    HOW: Explicit values pointing at tmp_path
    """
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'negotiator.db'}",
        DATABASE_BUSY_TIMEOUT=10.0,
        LLM_PROVIDER="none",
        MEDIATOR_TIMEOUT_SECONDS=1.0,
        LLM_RETRY_DELAY=0.01,
        CLOSE_DEAL_ON_REJECT=False,
        LOG_LEVEL="DEBUG",
        LOG_FILE=str(tmp_path / "logs" / "app.log"),
    )


@pytest.fixture
def database(settings):
    db = Database(settings)
    db.init()
    yield db
    db.close()


@pytest.fixture
def make_orchestrator(database, settings):
    """
    Build an orchestrator over the test database.

    Usage:
        orchestrator = make_orchestrator(provider=MockLLMProvider(...), CLOSE_DEAL_ON_REJECT=True)
    """
    def _make(provider=None, **overrides):
        cfg = settings.model_copy(update=overrides) if overrides else settings
        mediator = MediatorAgent.from_settings(provider, cfg)
        return NegotiationOrchestrator(database, mediator, cfg)

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    """Orchestrator with templated mediator messages."""
    return make_orchestrator()


@pytest.fixture
def deal_factory(orchestrator):
    """
    Publish a deal and (optionally) submit buyer terms.

    Defaults reproduce the reference scenario: seller_min 800, buyer_max 900,
    buyer opening 750, both urgencies medium -> proposal 820.
    """
    def _create(
        orch=None,
        *,
        seller_initial=1000.0,
        seller_min=800.0,
        seller_urgency="medium",
        buyer_max=900.0,
        buyer_initial_offer=750.0,
        buyer_urgency="medium",
        owner_id="seller-1",
        title="Road bike",
    ):
        orch = orch or orchestrator
        deal = orch.create_deal(
            owner_id=owner_id,
            title=title,
            description="Carbon frame, 56cm",
            public_price=seller_initial,
            seller_initial=seller_initial,
            seller_min=seller_min,
            seller_urgency=seller_urgency,
        )
        if buyer_max is not None:
            orch.submit_buyer_terms(
                deal["deal_id"],
                buyer_max=buyer_max,
                buyer_initial_offer=buyer_initial_offer,
                buyer_urgency=buyer_urgency,
            )
        return deal

    return _create
