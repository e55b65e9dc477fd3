"""
Unit tests for mediator suggestion parsing and text helpers.

WHAT: parse_mediator_payload, extract_amounts, truncate_transcript
WHY: Capability output is loosely formatted and must be shape-checked
HOW: Representative well-formed and malformed inputs
"""

import pytest

from negotiator.utils.offers import parse_mediator_payload, extract_amounts
from negotiator.utils.history_truncation import truncate_transcript


@pytest.mark.unit
class TestParseMediatorPayload:

    def test_plain_json(self):
        parsed = parse_mediator_payload('{"offer_price": 820, "rationale": "mid", "message": "Deal at $820?"}')
        assert parsed == {"offer_price": 820.0, "message": "Deal at $820?", "rationale": "mid"}

    def test_fenced_block(self):
        text = 'Proposal:\n```json\n{"offer_price": "820.5", "message": "ok"}\n```\nThanks'
        parsed = parse_mediator_payload(text)
        assert parsed["offer_price"] == 820.5
        assert parsed["rationale"] == ""

    def test_embedded_object_with_price_key(self):
        text = 'I suggest {"price": 830, "buyer_message": "How about $830?"} as a compromise.'
        parsed = parse_mediator_payload(text)
        assert parsed["offer_price"] == 830.0
        assert parsed["message"] == "How about $830?"

    @pytest.mark.parametrize("text", [
        "",
        "no json here",
        '{"message": "missing price"}',
        '{"offer_price": 820}',
        '{"offer_price": 820, "message": "   "}',
        '{"offer_price": -5, "message": "negative"}',
        '{"offer_price": true, "message": "bool"}',
        '{"offer_price": "abc", "message": "text price"}',
        '[820, "list"]',
    ])
    def test_invalid_payloads(self, text):
        assert parse_mediator_payload(text) is None


@pytest.mark.unit
class TestExtractAmounts:

    def test_dollar_forms(self):
        assert extract_amounts("from $1,250 down to $820.50") == [1250.0, 820.5]

    def test_suffix_forms(self):
        assert extract_amounts("about 900 dollars or 950 USD") == [900.0, 950.0]

    def test_plain_numbers_are_ignored(self):
        assert extract_amounts("56cm frame, 2 wheels") == []


@pytest.mark.unit
class TestTruncateTranscript:

    def test_keeps_most_recent_messages(self):
        transcript = [{"content": str(i)} for i in range(20)]
        assert [m["content"] for m in truncate_transcript(transcript, max_messages=3)] == ["17", "18", "19"]

    def test_character_budget_drops_oldest(self):
        transcript = [{"content": "a" * 100}, {"content": "b" * 100}, {"content": "c" * 100}]
        kept = truncate_transcript(transcript, max_messages=10, max_chars=250)
        assert [m["content"][0] for m in kept] == ["b", "c"]

    def test_always_keeps_last_message(self):
        kept = truncate_transcript([{"content": "x" * 5000}], max_chars=10)
        assert len(kept) == 1

    def test_empty(self):
        assert truncate_transcript([]) == []
