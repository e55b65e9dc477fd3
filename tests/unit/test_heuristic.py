"""
Unit tests for the negotiation heuristic.

WHAT: Zone detection, pricing formula, bounds and determinism
WHY: The numeric decision is the one thing the mediator never delegates
HOW: Worked scenarios plus seeded randomized bound checks
"""

import random

import pytest

from negotiator.core.models import Urgency
from negotiator.models.negotiation import TermsSnapshot, HeuristicResult
from negotiator.services.heuristic import (
    compute_offer,
    assert_within_zone,
    urgency_weight,
    round_currency,
    clamp,
)
from negotiator.utils.exceptions import ValidationException, InternalConsistencyError


def make_terms(
    seller_min_current=800.0,
    buyer_max=900.0,
    buyer_initial_offer=750.0,
    seller_urgency=Urgency.MEDIUM,
    buyer_urgency=Urgency.MEDIUM,
):
    return TermsSnapshot(
        seller_initial=max(seller_min_current, 1000.0),
        seller_min=seller_min_current,
        seller_min_current=seller_min_current,
        seller_urgency=seller_urgency,
        buyer_max=buyer_max,
        buyer_initial_offer=buyer_initial_offer,
        buyer_urgency=buyer_urgency,
    )


@pytest.mark.unit
class TestScenarios:
    """Worked examples."""

    def test_medium_urgencies_blend_toward_opening_offer(self):
        result = compute_offer(make_terms())

        assert result.has_zone is True
        assert result.price == 820
        assert (result.lower, result.upper) == (800, 900)

    def test_no_zone_reports_seller_min_current(self):
        result = compute_offer(make_terms(seller_min_current=900, buyer_max=800, buyer_initial_offer=700))

        assert result.has_zone is False
        assert result.price == 900

    def test_urgent_buyer_skews_price_up(self):
        result = compute_offer(make_terms(buyer_urgency=Urgency.HIGH, seller_urgency=Urgency.LOW))
        # mid 850, skew +10, raw 860, blended 602 + 225
        assert result.price == 827

    def test_urgent_seller_skews_price_down(self):
        result = compute_offer(make_terms(buyer_urgency=Urgency.LOW, seller_urgency=Urgency.HIGH))
        # mid 850, skew -10, raw 840, blended 588 + 225
        assert result.price == 813

    def test_low_opening_offer_is_clamped_to_seller_min(self):
        result = compute_offer(make_terms(seller_min_current=800, buyer_max=810, buyer_initial_offer=100))
        assert result.price == 800

    def test_single_point_zone(self):
        result = compute_offer(make_terms(seller_min_current=850, buyer_max=850, buyer_initial_offer=600))
        assert result.has_zone is True
        assert result.price == 850

    def test_fractional_zone_without_integer_keeps_exact_price(self):
        result = compute_offer(make_terms(seller_min_current=800.4, buyer_max=800.6, buyer_initial_offer=500))
        assert result.within_bounds(result.price)
        assert result.price == pytest.approx(800.4)

    def test_rounding_never_leaves_zone(self):
        result = compute_offer(make_terms(seller_min_current=800.2, buyer_max=801.3, buyer_initial_offer=801.3))
        assert result.within_bounds(result.price)
        assert result.price == 801

    def test_missing_buyer_terms_is_validation_error(self):
        terms = make_terms(buyer_max=None, buyer_initial_offer=None)
        with pytest.raises(ValidationException):
            compute_offer(terms)


@pytest.mark.unit
class TestProperties:
    """Randomized bound and determinism checks."""

    URGENCIES = [Urgency.LOW, Urgency.MEDIUM, Urgency.HIGH]

    def _random_terms(self, rng):
        seller_min = round(rng.uniform(1, 5000), 2)
        buyer_max = round(rng.uniform(1, 5000), 2)
        buyer_initial = round(rng.uniform(0.01, buyer_max), 2)
        return make_terms(
            seller_min_current=seller_min,
            buyer_max=buyer_max,
            buyer_initial_offer=buyer_initial,
            seller_urgency=rng.choice(self.URGENCIES),
            buyer_urgency=rng.choice(self.URGENCIES),
        )

    def test_price_within_zone_when_zone_exists(self):
        rng = random.Random(42)
        checked = 0
        for _ in range(2000):
            terms = self._random_terms(rng)
            if terms.buyer_max < terms.seller_min_current:
                continue
            result = compute_offer(terms)
            assert result.has_zone
            assert terms.seller_min_current <= result.price <= terms.buyer_max, terms
            checked += 1
        assert checked > 100

    def test_price_is_seller_min_current_without_zone(self):
        rng = random.Random(7)
        for _ in range(2000):
            terms = self._random_terms(rng)
            if terms.buyer_max >= terms.seller_min_current:
                continue
            result = compute_offer(terms)
            assert result.has_zone is False
            assert result.price == terms.seller_min_current

    def test_deterministic(self):
        rng = random.Random(3)
        for _ in range(200):
            terms = self._random_terms(rng)
            assert compute_offer(terms) == compute_offer(terms)

    def test_history_does_not_change_price(self):
        terms = make_terms()
        assert compute_offer(terms, history=[850.0, 830.0]) == compute_offer(terms)


@pytest.mark.unit
class TestHelpers:

    def test_urgency_weights(self):
        assert urgency_weight(Urgency.LOW) == 0.3
        assert urgency_weight(Urgency.MEDIUM) == 0.5
        assert urgency_weight(Urgency.HIGH) == 0.7
        assert urgency_weight(None) == 0.5

    def test_round_half_up(self):
        assert round_currency(820.5) == 821
        assert round_currency(820.49) == 820
        assert round_currency(819.5) == 820

    def test_clamp(self):
        assert clamp(5, 1, 3) == 3
        assert clamp(-1, 1, 3) == 1
        assert clamp(2, 1, 3) == 2

    def test_assert_within_zone_raises_outside_bounds(self):
        result = HeuristicResult(price=820, has_zone=True, lower=800, upper=900)
        assert_within_zone(result, 820)
        with pytest.raises(InternalConsistencyError):
            assert_within_zone(result, 901)

    def test_assert_within_zone_ignores_no_zone(self):
        result = HeuristicResult(price=900, has_zone=False, lower=900, upper=900)
        assert_within_zone(result, 900)
