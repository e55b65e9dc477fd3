"""
Mock LLM provider for deterministic testing.

WHAT: Fake LLM provider that returns scripted responses
WHY: Test the mediator without real LLM dependency
HOW: Implement LLMProvider protocol with canned responses
"""

import asyncio
import json
from typing import Dict, List

from negotiator.llm.types import ChatMessage, LLMResult, ProviderStatus, ProviderResponseError


def mediator_json(price, message="A fair middle ground for both of you.", rationale="Balanced proposal.") -> str:
    """Well-formed mediator suggestion as the capability would return it."""
    return json.dumps({"offer_price": price, "rationale": rationale, "message": message})


class MockLLMProvider:
    """
    Mock LLM provider for testing with scripted responses.

    Can be configured to return specific responses, raise errors or stall.
    """

    def __init__(self, responses: List[str] | None = None, should_fail: bool = False, delay: float = 0.0):
        """
        Initialize mock provider.

        Args:
            responses: List of canned responses (cycled through)
            should_fail: If True, raise errors instead of responding
            delay: Seconds to sleep before answering
        """
        self.responses = responses or ["Mock response"]
        self.should_fail = should_fail
        self.delay = delay
        self.call_count = 0
        self.calls: List[Dict] = []
        self.closed = False

    async def ping(self) -> ProviderStatus:
        """Mock ping."""
        return ProviderStatus(
            available=not self.should_fail,
            base_url="http://mock:1234/v1",
            models=["mock-model"] if not self.should_fail else None,
            error="Mock failure" if self.should_fail else None
        )

    async def generate(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: List[str] | None = None,
        model: str | None = None
    ) -> LLMResult:
        """Mock generate."""
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stop": stop,
        })

        if self.delay:
            await asyncio.sleep(self.delay)

        if self.should_fail:
            raise ProviderResponseError("Mock provider error")

        response_text = self.responses[self.call_count % len(self.responses)]
        self.call_count += 1

        return LLMResult(
            text=response_text,
            usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            model="mock-model"
        )

    async def close(self) -> None:
        self.closed = True
