"""
OpenAI-compatible cloud provider.

WHAT: Hosted text generation for mediator wording
WHY: Better phrasing than the templated fallback when a key is configured
HOW: Chat-completions API with bearer authorization
"""

from .base import OpenAICompatibleProvider
from .types import ProviderDisabledError
from ..core.config import Settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIProvider(OpenAICompatibleProvider):
    """Cloud provider; refuses to start without an API key."""

    name = "OpenAI"

    def __init__(self, settings: Settings):
        api_key = settings.OPENAI_API_KEY
        if not api_key or not api_key.strip():
            logger.error("OpenAI provider selected but OPENAI_API_KEY is not set or empty!")
            raise ProviderDisabledError(
                "LLM_PROVIDER=openai but OPENAI_API_KEY is not set. "
                "Set OPENAI_API_KEY or use LLM_PROVIDER=none for templated messages."
            )

        super().__init__(
            base_url=settings.OPENAI_BASE_URL,
            default_model=settings.OPENAI_DEFAULT_MODEL,
            timeout=settings.MEDIATOR_TIMEOUT_SECONDS,
            max_retries=settings.LLM_MAX_RETRIES,
            retry_delay=settings.LLM_RETRY_DELAY,
            headers={
                "Authorization": f"Bearer {api_key}",
                "X-Title": settings.APP_NAME,
            },
        )
        masked = '*' * 10 + api_key[-4:] if len(api_key) > 4 else '***'
        logger.info(f"OpenAI provider initialized (model: {self.default_model}, API key: {masked})")
