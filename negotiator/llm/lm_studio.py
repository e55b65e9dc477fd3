"""
LM Studio provider implementation.

WHAT: Local text generation via LM Studio
WHY: Local-first wording without external API dependencies
HOW: OpenAI-compatible API; reasoning output of Qwen3-style models suppressed
"""

import re

from .base import OpenAICompatibleProvider
from .types import ChatMessage
from ..core.config import Settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class LMStudioProvider(OpenAICompatibleProvider):
    """LM Studio provider."""

    name = "LM Studio"

    def __init__(self, settings: Settings):
        super().__init__(
            base_url=settings.LM_STUDIO_BASE_URL,
            default_model=settings.LM_STUDIO_DEFAULT_MODEL,
            timeout=settings.MEDIATOR_TIMEOUT_SECONDS,
            max_retries=settings.LLM_MAX_RETRIES,
            retry_delay=settings.LLM_RETRY_DELAY,
        )
        logger.info(f"LM Studio provider initialized (model: {self.default_model}, url: {self.base_url})")

    def _prepare_messages(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        """
        Add the /no_think directive for Qwen3 models.

        Appended to the system message if present, otherwise to the first
        user message. The caller's list is not mutated.
        """
        modified = [dict(m) for m in messages]
        target = next((m for m in modified if m.get("role") == "system"), None)
        if target is None:
            target = next((m for m in modified if m.get("role") == "user"), None)
        if target is not None and "/no_think" not in target.get("content", ""):
            target["content"] = f"{target.get('content', '')}\n\n/no_think"
        return modified

    def _extra_payload(self) -> dict:
        return {"enable_thinking": False}

    def _postprocess_text(self, text: str) -> str:
        """Remove <think>...</think> blocks the model may still emit."""
        text = re.sub(r'<think(?:ing)?>.*?</think(?:ing)?>\s*', '', text, flags=re.DOTALL | re.IGNORECASE)
        text = re.sub(r'</?think(?:ing)?>\s*', '', text, flags=re.IGNORECASE)
        return text.strip()
