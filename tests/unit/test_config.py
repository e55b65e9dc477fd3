"""
Unit tests for settings and logging setup.
"""

import logging

import pytest
from pydantic import ValidationError

from negotiator.core.config import Settings
from negotiator.utils.logger import setup_logging


@pytest.mark.unit
class TestSettings:

    def test_cors_origins_list(self, settings):
        cfg = settings.model_copy(update={"CORS_ORIGINS": "http://a.test, http://b.test,"})
        assert cfg.get_cors_origins_list() == ["http://a.test", "http://b.test"]

    def test_cors_origins_accepts_list(self, tmp_path):
        cfg = Settings(CORS_ORIGINS=["http://a.test", "http://b.test"], LOG_FILE=str(tmp_path / "x.log"))
        assert cfg.CORS_ORIGINS == "http://a.test,http://b.test"

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(MEDIATOR_TIMEOUT_SECONDS=0)

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LLM_PROVIDER="openrouter")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CLOSE_DEAL_ON_REJECT", "true")
        monkeypatch.setenv("MEDIATOR_TIMEOUT_SECONDS", "2.5")
        cfg = Settings()
        assert cfg.CLOSE_DEAL_ON_REJECT is True
        assert cfg.MEDIATOR_TIMEOUT_SECONDS == 2.5


@pytest.mark.unit
def test_setup_logging_is_repeatable(settings):
    setup_logging(settings)
    setup_logging(settings)

    ours = [h for h in logging.getLogger().handlers if getattr(h, "_negotiator_handler", False)]
    assert len(ours) == 2
    assert settings.LOG_FILE.endswith("app.log")
