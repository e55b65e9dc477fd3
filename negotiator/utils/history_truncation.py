"""
Transcript truncation utilities.

WHAT: Trim the negotiation transcript to a tail that fits the prompt
WHY: Context windows are limited and old chatter adds little
HOW: Keep most recent messages while respecting a character limit
"""

from typing import Sequence

from ..utils.logger import get_logger

logger = get_logger(__name__)


def truncate_transcript(
    transcript: Sequence[dict],
    max_messages: int = 10,
    max_chars: int = 3000
) -> list[dict]:
    """
    Keep the transcript tail within message and character limits.

    Strategy:
    1. Keep most recent messages (up to max_messages)
    2. Drop oldest messages while total chars exceed max_chars
    3. Always keep the most recent message (even if it exceeds limit alone)

    Args:
        transcript: Entries with at least a "content" key, oldest first
        max_messages: Maximum number of messages to keep
        max_chars: Maximum total characters across all messages

    Returns:
        Truncated list, oldest first
    """
    if not transcript or max_messages <= 0:
        return []

    truncated = list(transcript[-max_messages:])
    total_chars = sum(len(str(msg.get("content", ""))) for msg in truncated)

    while len(truncated) > 1 and total_chars > max_chars:
        removed = truncated.pop(0)
        total_chars -= len(str(removed.get("content", "")))

    if len(truncated) < len(transcript):
        logger.debug(f"Transcript truncated: {len(transcript)} -> {len(truncated)} messages ({total_chars} chars)")

    return truncated
