import pytest

from conftest import T0, direct_snapshot, flight, hotel, portal_snapshot
from portal_verdict.app.errors import InvalidPriceError
from portal_verdict.app.schemas import (
    BookingType,
    ComparisonResult,
    ConfidenceLevel,
    CurrencyMismatch,
    PriceLabel,
    Winner,
)
from portal_verdict.compute.earn_rates import EarnRates
from portal_verdict.compute.matcher import match_snapshots
from portal_verdict.compute.verdict import calculate_verdict, compute_break_even, points_earned


def test_break_even_arithmetic_for_flights():
    result = compute_break_even(500, 480, portal_multiplier=5, direct_multiplier=2, miles_valuation_cents=1.7)
    assert result.portal_points == 2500
    assert result.direct_points == 960
    assert result.break_even_premium == pytest.approx(26.18)
    assert result.delta == 20
    assert result.winner == Winner.PORTAL
    assert result.net_difference == pytest.approx(6.18)
    assert result.portal_points_value == pytest.approx(42.5)
    assert result.direct_points_value == pytest.approx(16.32)


def test_direct_wins_when_premium_exceeds_break_even():
    result = compute_break_even(600, 480, 5, 2)
    assert result.break_even_premium == pytest.approx(34.68)
    assert result.winner == Winner.DIRECT
    assert result.net_difference == pytest.approx(85.32)


def test_tie_within_epsilon():
    result = compute_break_even(500, 474, 5, 2, tie_epsilon=1.0)
    assert result.winner == Winner.TIE


def test_points_are_floored():
    assert points_earned(199.99, 2) == 399
    assert points_earned(0.29, 100) == 29


@pytest.mark.parametrize("portal,direct", [(0, 100), (100, -1)])
def test_non_positive_prices_rejected(portal, direct):
    with pytest.raises(InvalidPriceError):
        compute_break_even(portal, direct, 5, 2)


def test_currency_mismatch_is_a_value_not_a_verdict():
    result = calculate_verdict(portal_snapshot(), direct_snapshot(currency="EUR"))
    assert isinstance(result, CurrencyMismatch)
    assert result.recoverable is True
    assert "USD" in result.message and "EUR" in result.message


def test_verdict_fields_and_audit_trail():
    portal, direct = portal_snapshot(itinerary=flight()), direct_snapshot()
    verdict = calculate_verdict(portal, direct, session_id="cmp_1", now=T0 + 5)
    assert isinstance(verdict, ComparisonResult)
    assert verdict.winner == Winner.PORTAL
    assert verdict.delta_percent == pytest.approx(4.17)
    assert verdict.created_at == T0 + 5
    assert verdict.session_id == "cmp_1"
    assert verdict.itinerary_summary.startswith("JFK → LAX")
    assert verdict.match_score is None
    assert any("1.7¢" in a for a in verdict.assumptions)
    assert any("5x Flights" in a for a in verdict.assumptions)
    assert any("match not checked" in a for a in verdict.assumptions)
    assert "Prices are within $50 of each other" in verdict.notes


def test_confidence_is_minimum_of_inputs():
    verdict = calculate_verdict(
        portal_snapshot(confidence=ConfidenceLevel.HIGH),
        direct_snapshot(confidence=ConfidenceLevel.MED),
    )
    assert verdict.confidence == ConfidenceLevel.MED


def test_weak_match_caps_confidence():
    portal = portal_snapshot(booking_type=BookingType.HOTEL, itinerary=hotel())
    direct = direct_snapshot(itinerary=hotel(hotel_name="Marriott Copley Place", city="Chicago", guest_count=4))
    match = match_snapshots(portal, direct)
    verdict = calculate_verdict(portal, direct, match)
    assert match.confidence == ConfidenceLevel.LOW
    assert verdict.confidence == ConfidenceLevel.LOW
    assert verdict.match_score == match.score
    assert set(match.warnings) <= set(verdict.notes)


def test_booking_type_inferred_from_itinerary():
    portal = portal_snapshot(booking_type=None, itinerary=hotel())
    verdict = calculate_verdict(portal, direct_snapshot())
    assert verdict.booking_type == BookingType.HOTEL
    assert verdict.portal_points_earned == 5000
    assert any("inferred hotel" in a for a in verdict.assumptions)


def test_booking_type_defaults_to_other():
    verdict = calculate_verdict(portal_snapshot(booking_type=None), direct_snapshot())
    assert verdict.booking_type == BookingType.OTHER
    assert verdict.portal_points_earned == 1000


def test_price_label_and_manual_notes():
    verdict = calculate_verdict(
        portal_snapshot(label=PriceLabel.PER_NIGHT),
        direct_snapshot(source="manual"),
    )
    assert "Portal price may not be the total" in verdict.notes
    assert "Contains a manually entered price" in verdict.notes


def test_large_delta_commentary():
    verdict = calculate_verdict(portal_snapshot(amount=700), direct_snapshot(amount=480))
    assert "Portal is $220 more expensive" in verdict.notes


def test_custom_earn_rates():
    verdict = calculate_verdict(
        portal_snapshot(),
        direct_snapshot(),
        earn_rates=EarnRates(direct=1, portal_flight=5),
        miles_valuation_cents=1.0,
    )
    assert verdict.direct_points_earned == 480
    assert verdict.break_even_premium == pytest.approx(20.2)
