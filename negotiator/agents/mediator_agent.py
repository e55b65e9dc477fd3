"""
Mediator agent implementation.

WHAT: Drafts the human-readable mediator message for a computed offer
WHY: Wording may come from the text-generation capability, but the number
     always comes from the heuristic and deal progress never waits on it
HOW: Bounded-time provider call, strict validation into DraftValid /
     DraftInvalid, deterministic templated fallback on any failure
"""

import asyncio
from typing import Optional, Sequence

from ..core.config import Settings
from ..llm.provider import LLMProvider
from ..llm.types import ProviderError
from ..models.negotiation import (
    TermsSnapshot,
    HeuristicResult,
    ProductSnapshot,
    DraftResult,
    DraftValid,
    DraftInvalid,
    MediatorDraft,
)
from ..utils.offers import parse_mediator_payload, extract_amounts
from .prompts import render_mediator_prompt
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Suggested prices closer than this to the heuristic price count as equal
PRICE_TOLERANCE = 0.5


def format_money(amount: float) -> str:
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


class MediatorAgent:
    """Mediator that words proposals without owning the pricing decision."""

    def __init__(
        self,
        provider: Optional[LLMProvider],
        *,
        timeout: float = 8.0,
        temperature: float = 0.2,
        max_tokens: int = 512,
        history_messages: int = 10,
        history_chars: int = 3000,
    ):
        """
        Initialize mediator agent.

        Args:
            provider: LLM provider instance, or None for templated wording only
            timeout: Hard bound in seconds on one drafting call
            temperature: LLM temperature
            max_tokens: Maximum tokens to generate
            history_messages: Transcript messages included in the prompt
            history_chars: Character budget for the transcript tail
        """
        self.provider = provider
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.history_messages = history_messages
        self.history_chars = history_chars

    @classmethod
    def from_settings(cls, provider: Optional[LLMProvider], settings: Settings) -> "MediatorAgent":
        return cls(
            provider,
            timeout=settings.MEDIATOR_TIMEOUT_SECONDS,
            temperature=settings.LLM_DEFAULT_TEMPERATURE,
            max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
            history_messages=settings.MEDIATOR_HISTORY_MESSAGES,
            history_chars=settings.MEDIATOR_HISTORY_CHARS,
        )

    async def draft(
        self,
        product: ProductSnapshot,
        terms: TermsSnapshot,
        heuristic: HeuristicResult,
        transcript: Sequence[dict] = (),
    ) -> MediatorDraft:
        """
        Produce the mediator message for a heuristic result.

        Never raises for capability problems: timeouts, provider errors and
        invalid suggestions all fall back to the templated message.

        Returns:
            MediatorDraft whose price is always heuristic.price
        """
        if self.provider is None:
            return self.fallback(heuristic, "provider disabled")

        messages = render_mediator_prompt(
            product, terms, heuristic, transcript,
            max_messages=self.history_messages,
            max_chars=self.history_chars,
        )

        try:
            result = await asyncio.wait_for(
                self.provider.generate(
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Mediator drafting timed out after {self.timeout}s; using template")
            return self.fallback(heuristic, "timeout")
        except ProviderError as e:
            logger.warning(f"Mediator provider error ({type(e).__name__}: {e}); using template")
            return self.fallback(heuristic, f"provider error: {e}")
        except Exception as e:
            logger.error(f"Unexpected mediator drafting failure: {e}", exc_info=True)
            return self.fallback(heuristic, f"unexpected error: {type(e).__name__}")

        verdict = self.validate(result.text, heuristic, terms, public_amounts=(product.public_price,))
        if isinstance(verdict, DraftInvalid):
            logger.warning(f"Mediator suggestion discarded ({verdict.reason}); using template")
            return self.fallback(heuristic, verdict.reason)

        logger.info(f"Mediator drafted message via {result.model} for {format_money(heuristic.price)}")
        return MediatorDraft(
            price=heuristic.price,
            message=verdict.message,
            rationale=verdict.rationale or self._template_rationale(heuristic),
            source="llm",
        )

    def validate(
        self,
        text: str,
        heuristic: HeuristicResult,
        terms: TermsSnapshot,
        public_amounts: Sequence[float] = (),
    ) -> DraftResult:
        """
        Decide whether a raw capability response may be used.

        A suggestion is valid when it parses, its price lies inside the
        heuristic bound and matches the heuristic price, its text does not
        reveal a private limit, and every amount it quotes is the proposed
        price or one of `public_amounts` (e.g. the listed price).
        """
        payload = parse_mediator_payload(text)
        if payload is None:
            return DraftInvalid("unparsable response")

        price = payload["offer_price"]
        if not heuristic.within_bounds(price):
            return DraftInvalid(
                f"suggested price {price} outside bound [{heuristic.lower}, {heuristic.upper}]"
            )
        if abs(price - heuristic.price) >= PRICE_TOLERANCE:
            return DraftInvalid(f"suggested price {price} differs from computed price {heuristic.price}")

        wording = payload["message"] + " " + payload["rationale"]
        if self._reveals_private_limit(wording, terms, heuristic):
            return DraftInvalid("text reveals a private limit")
        if self._quotes_other_price(wording, heuristic, public_amounts):
            return DraftInvalid("text quotes a price other than the proposal")

        return DraftValid(price=heuristic.price, message=payload["message"], rationale=payload["rationale"])

    @staticmethod
    def _quotes_other_price(text: str, heuristic: HeuristicResult, public_amounts: Sequence[float]) -> bool:
        allowed = [heuristic.price, *(a for a in public_amounts if a is not None)]
        return any(
            all(abs(amount - ok) >= PRICE_TOLERANCE for ok in allowed)
            for amount in extract_amounts(text)
        )

    @staticmethod
    def _reveals_private_limit(text: str, terms: TermsSnapshot, heuristic: HeuristicResult) -> bool:
        private = {
            v for v in (terms.seller_min, terms.seller_min_current, terms.buyer_max)
            if v is not None and abs(v - heuristic.price) >= PRICE_TOLERANCE
        }
        return any(abs(amount - limit) < 0.005 for amount in extract_amounts(text) for limit in private)

    def fallback(self, heuristic: HeuristicResult, reason: str) -> MediatorDraft:
        """Deterministic templated message built from the heuristic price."""
        price = format_money(heuristic.price)
        if heuristic.has_zone:
            message = (
                f"I propose closing at {price}. It sits inside what both sides can work with "
                f"and gives this deal its best chance to close."
            )
        else:
            message = (
                f"Your positions do not overlap yet. The closest counter-offer I can put forward "
                f"right now is {price}."
            )
        return MediatorDraft(
            price=heuristic.price,
            message=message,
            rationale=self._template_rationale(heuristic),
            source="fallback",
            fallback_reason=reason,
        )

    @staticmethod
    def _template_rationale(heuristic: HeuristicResult) -> str:
        if heuristic.has_zone:
            return (
                "Heuristic proposal: midpoint of the zone of agreement, adjusted for urgency "
                "and blended toward the buyer's opening offer."
            )
        return "No zone of agreement: the buyer's limit is below the seller's current minimum."
