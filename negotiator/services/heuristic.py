"""
Negotiation heuristic.

WHAT: Pure function computing a bounded counter-offer from current terms
WHY: The numeric decision must be deterministic and never depend on the LLM
HOW: Midpoint of the zone of agreement, skewed by relative urgency, blended
     toward the buyer's opening offer, clamped and rounded

Worked example (both urgencies medium):
    seller_min_current=800, buyer_max=900, buyer_initial_offer=750
    mid=850, skew=0, raw=850, blended=850*0.7 + 750*0.3 = 820
"""

import math
from typing import Optional, Sequence

from ..core.models import Urgency
from ..models.negotiation import TermsSnapshot, HeuristicResult
from ..utils.exceptions import InternalConsistencyError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)

URGENCY_WEIGHTS = {
    Urgency.LOW: 0.3,
    Urgency.MEDIUM: 0.5,
    Urgency.HIGH: 0.7,
}

SKEW_FACTOR = 0.25
RAW_WEIGHT = 0.7
BUYER_OPENING_WEIGHT = 0.3


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def urgency_weight(urgency: Optional[Urgency]) -> float:
    """Numeric weight of an urgency level; unknown or missing counts as medium."""
    if urgency is None:
        return URGENCY_WEIGHTS[Urgency.MEDIUM]
    return URGENCY_WEIGHTS.get(urgency, URGENCY_WEIGHTS[Urgency.MEDIUM])


def round_currency(value: float) -> float:
    """Round half up to a whole currency unit."""
    return float(math.floor(value + 0.5))


def compute_offer(terms: TermsSnapshot, history: Sequence = ()) -> HeuristicResult:
    """
    Compute a bounded counter-offer.

    Args:
        terms: Current terms; buyer fields must be set
        history: Prior offers. The formula depends on current terms only, so
            the orchestrator always leaves this out; it is accepted so the
            signature stays stable if history-aware pricing is added

    Returns:
        HeuristicResult. With a zone, lower <= price <= upper. Without one,
        price == seller_min_current and has_zone is False.

    Raises:
        ValidationException: buyer terms missing
    """
    if not terms.buyer_ready:
        raise ValidationException(
            "Buyer terms are missing (buyer_max / buyer_initial_offer)",
            field_errors=[{"field": "buyer_max", "msg": "required before proposing"}]
        )

    lower = float(terms.seller_min_current)
    upper = float(terms.buyer_max)

    if upper < lower:
        logger.debug(f"No zone of agreement (buyer_max={upper} < seller_min_current={lower})")
        return HeuristicResult(price=lower, has_zone=False, lower=lower, upper=lower)

    bw = urgency_weight(terms.buyer_urgency)
    sw = urgency_weight(terms.seller_urgency)

    mid = (lower + upper) / 2
    skew = (bw - sw) * (upper - lower) * SKEW_FACTOR
    raw = clamp(mid + skew, lower, upper)
    blended = clamp(raw * RAW_WEIGHT + float(terms.buyer_initial_offer) * BUYER_OPENING_WEIGHT, lower, upper)

    # Rounding can cross a fractional bound; pull back inside the zone
    price = round_currency(blended)
    if price > upper:
        price = float(math.floor(upper))
    if price < lower:
        price = float(math.ceil(lower))
    if not lower <= price <= upper:
        # Zone narrower than one unit with no integer inside it
        price = blended

    result = HeuristicResult(price=price, has_zone=True, lower=lower, upper=upper)
    logger.debug(f"Heuristic: mid={mid:.2f} skew={skew:.2f} raw={raw:.2f} blended={blended:.2f} price={price}")
    return result


def assert_within_zone(result: HeuristicResult, price: float) -> None:
    """
    Postcondition checked before an offer is persisted.

    Raises:
        InternalConsistencyError: price outside [lower, upper] while a zone exists
    """
    if result.has_zone and not result.within_bounds(price):
        logger.critical(
            f"Offer price {price} outside zone [{result.lower}, {result.upper}]; aborting"
        )
        raise InternalConsistencyError(
            f"Offer price {price} outside zone [{result.lower}, {result.upper}]"
        )
