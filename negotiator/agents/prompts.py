"""
Prompt templates for the mediator.

WHAT: System prompt and request rendering for mediator wording
WHY: The capability phrases the proposal; it never decides the number
HOW: System message with output contract, user message with a JSON context
     in which private bounds are redacted
"""

import json
from typing import Sequence

from ..llm.types import ChatMessage
from ..models.negotiation import TermsSnapshot, HeuristicResult, ProductSnapshot
from ..utils.history_truncation import truncate_transcript

MEDIATOR_SYSTEM_PROMPT = """You are a neutral negotiation mediator between a seller and a buyer of a single item.
Your job is to phrase the proposal so that both parties feel it is fair and the deal is likely to close.

Always return ONLY a valid JSON object with this exact shape:

{
  "offer_price": number,
  "rationale": string,
  "message": string
}

Rules:
- offer_price MUST equal proposed_price from the context. You do not choose the price.
- If zone_of_agreement is false, explain briefly that the positions do not overlap yet and
  present proposed_price as the closest possible counter-offer.
- message is shown to both parties: keep it short (under 80 words) and persuasive.
- Never mention or guess either party's private limits (maximum budget, minimum price).
- Use "$" for amounts.
- Do NOT output reasoning, <think> tags or any text outside the JSON object."""


def build_mediator_context(
    product: ProductSnapshot,
    terms: TermsSnapshot,
    heuristic: HeuristicResult,
    transcript: Sequence[dict],
    *,
    max_messages: int = 10,
    max_chars: int = 3000,
) -> dict:
    """
    Context object sent to the capability.

    seller_min, seller_min_current and buyer_max are private and left out.
    """
    tail = truncate_transcript(transcript, max_messages=max_messages, max_chars=max_chars)
    return {
        "deal": {
            "title": product.title,
            "description": product.description,
            "public_price": product.public_price,
        },
        "terms": {
            "seller_opening_price": terms.seller_initial,
            "seller_urgency": _enum_value(terms.seller_urgency),
            "buyer_opening_offer": terms.buyer_initial_offer,
            "buyer_urgency": _enum_value(terms.buyer_urgency),
        },
        "zone_of_agreement": heuristic.has_zone,
        "proposed_price": heuristic.price,
        "transcript_tail": [
            {"from": _enum_value(m.get("sender_role")), "content": m.get("content", "")}
            for m in tail
        ],
    }


def render_mediator_prompt(
    product: ProductSnapshot,
    terms: TermsSnapshot,
    heuristic: HeuristicResult,
    transcript: Sequence[dict],
    *,
    max_messages: int = 10,
    max_chars: int = 3000,
) -> list[ChatMessage]:
    """
    Render the mediator request.

    Returns:
        [system, user] messages; the user message is the JSON context
    """
    context = build_mediator_context(
        product, terms, heuristic, transcript,
        max_messages=max_messages, max_chars=max_chars,
    )
    return [
        {"role": "system", "content": MEDIATOR_SYSTEM_PROMPT},
        {"role": "user", "content": json.dumps(context, ensure_ascii=False)},
    ]


def _enum_value(value):
    return getattr(value, "value", value)
