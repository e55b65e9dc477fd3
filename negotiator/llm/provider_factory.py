"""
LLM provider factory.

WHAT: Build the configured text-generation provider
WHY: Centralize provider selection; the mediator only sees the protocol
HOW: Read LLM_PROVIDER from the Settings passed in, log selection
"""

from typing import TYPE_CHECKING, Optional

from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .provider import LLMProvider
    from ..core.config import Settings

logger = get_logger(__name__)


def create_provider(settings: "Settings") -> Optional["LLMProvider"]:
    """
    Build the provider named by settings.LLM_PROVIDER.

    Returns:
        Provider instance, or None for "none" (templated messages only)

    Raises:
        ValueError: If provider name is unknown
        ProviderDisabledError: If the provider is selected but misconfigured
    """
    provider_name = settings.LLM_PROVIDER

    if provider_name == "none":
        logger.info("LLM provider disabled; mediator uses templated messages")
        return None
    if provider_name == "openai":
        from .openai_provider import OpenAIProvider
        provider = OpenAIProvider(settings)
    elif provider_name == "lm_studio":
        from .lm_studio import LMStudioProvider
        provider = LMStudioProvider(settings)
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")

    logger.info(f"LLM provider initialized: {provider_name}")
    return provider
