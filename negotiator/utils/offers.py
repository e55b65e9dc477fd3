"""
Mediator suggestion parsing utilities.

WHAT: Parse the structured suggestion returned by the text-generation capability
WHY: The capability is asked for JSON but may wrap or decorate it
HOW: Fenced block, bare document, then first embedded object; shape-checked
"""

import json
import re
from typing import Dict, Any

from ..utils.logger import get_logger

logger = get_logger(__name__)

PRICE_KEYS = ("offer_price", "price")


def parse_mediator_payload(text: str) -> Dict[str, Any] | None:
    """
    Parse a mediator suggestion from LLM-generated text.

    Expected shape:
        {"offer_price": 820, "rationale": "...", "message": "..."}

    Accepted wrappers:
    - ```json {...}``` fenced block
    - the whole response as one JSON document
    - the first JSON object in the text containing a price key

    Returns:
        Dict with offer_price (float), message (str), rationale (str), or
        None if no valid suggestion could be found
    """
    if not text:
        return None

    candidates = []

    fence_match = re.search(r'```(?:json)?\s*(\{.*?\})\s*```', text, re.IGNORECASE | re.DOTALL)
    if fence_match:
        candidates.append(fence_match.group(1))

    candidates.append(text.strip())

    for match in re.finditer(r'\{[^{}]*"(?:offer_price|price)"[^{}]*\}', text, re.DOTALL):
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        normalized = _normalize(data)
        if normalized is not None:
            return normalized

    logger.debug("No valid mediator suggestion found in text")
    return None


def _normalize(data: Any) -> Dict[str, Any] | None:
    """
    Validate the suggestion shape and coerce field types.

    Returns:
        Normalized dict, or None if required fields are missing or mistyped
    """
    if not isinstance(data, dict):
        return None

    raw_price = next((data[k] for k in PRICE_KEYS if k in data), None)
    if raw_price is None or isinstance(raw_price, bool):
        return None
    try:
        price = float(raw_price)
    except (ValueError, TypeError):
        return None
    if price <= 0 or price != price:  # NaN check
        return None

    message = data.get("message") or data.get("buyer_message")
    if not isinstance(message, str) or not message.strip():
        return None

    rationale = data.get("rationale", "")
    if not isinstance(rationale, str):
        rationale = str(rationale)

    return {"offer_price": price, "message": message.strip(), "rationale": rationale.strip()}


def extract_amounts(text: str) -> list[float]:
    """
    Extract currency-looking amounts from natural language.

    Matches "$1,250", "$820.50", "820 USD", "820 dollars".
    """
    amounts = []
    patterns = [
        r'\$\s*(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?',
        r'(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?\s*(?:USD|dollars?)\b',
    ]
    for pattern in patterns:
        for match in re.finditer(pattern, text, re.IGNORECASE):
            whole = match.group(1).replace(",", "")
            cents = match.group(2)
            try:
                amounts.append(float(f"{whole}.{cents}" if cents else whole))
            except ValueError:
                continue
    return amounts
