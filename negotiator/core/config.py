"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config built once at process start
HOW: Pydantic BaseSettings reads from .env and environment; the instance is
     passed explicitly into every component that needs it
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Literal
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=[
            str(Path(__file__).parent.parent.parent / ".env"),
        ],
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App metadata
    APP_NAME: str = "Negotiator AI"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./data/negotiator.db"
    DATABASE_BUSY_TIMEOUT: float = 10.0  # seconds a writer waits for the lock

    # Text-generation provider selection ("none" = templated messages only)
    LLM_PROVIDER: Literal["openai", "lm_studio", "none"] = "none"

    # OpenAI-compatible cloud configuration
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_DEFAULT_MODEL: str = "gpt-4o-mini"

    # LM Studio configuration
    LM_STUDIO_BASE_URL: str = "http://localhost:1234/v1"
    LM_STUDIO_DEFAULT_MODEL: str = "qwen/qwen3-1.7b"

    # LLM request configuration
    LLM_MAX_RETRIES: int = 1  # the templated fallback is the only retry
    LLM_RETRY_DELAY: float = 0.5
    LLM_DEFAULT_TEMPERATURE: float = 0.2
    LLM_DEFAULT_MAX_TOKENS: int = 512

    # Mediator drafting
    MEDIATOR_TIMEOUT_SECONDS: float = 8.0
    MEDIATOR_HISTORY_MESSAGES: int = 10
    MEDIATOR_HISTORY_CHARS: int = 3000

    # Negotiation policy: False reopens the deal on reject, True closes it
    CLOSE_DEAL_ON_REJECT: bool = False

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    @field_validator("MEDIATOR_TIMEOUT_SECONDS", "DATABASE_BUSY_TIMEOUT")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
